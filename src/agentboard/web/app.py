"""Flask app factory: creates and configures the dashboard API."""

from __future__ import annotations

from flask import Flask

from agentboard.config import AgentboardConfig
from agentboard.db import init_db


def create_app(config: AgentboardConfig) -> Flask:
    """Create the Flask app with config values and registered routes.

    Args:
        config: AgentboardConfig with db_path, hidden_agents, name_policy, etc.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    app.config["DB_PATH"] = config.db_path
    app.config["HIDDEN_AGENTS"] = list(config.hidden_agents)
    app.config["NAME_POLICY"] = config.name_policy
    app.config["STRICT"] = config.strict

    init_db(config.db_path)

    from agentboard.web.routes import bp

    app.register_blueprint(bp)

    return app
