"""Shared test fixtures for agentboard tests."""

import pytest

PERFORMANCE_CSV = """Agent Performance Report
Time Range:11/04/2025~11/04/2025
Agent,Chats,Avg. Chat Time,Total Chat Time,Last Message Sent by Agent
Ayse Yilmaz,42,00:05:30 (Avg.),03:51:00,40
Mehmet Kaya,17,04:10,1:10:50,15
Total,59,00:05:00,05:01:50,55
"""

RATING_CSV = """Agent Rating Report
Time Range:11/04/2025~11/04/2025
Agent,Avg. Score,Rating Times,Score 5,Score 4,Score 3,Score 2,Score 1
Ayse Yilmaz,4.5,10,7,2,0,1,0
Mehmet Kaya,3.0 (Avg.),4,1,1,0,1,1
Average,3.75,14,8,3,0,2,1
,,,,,,,
"""

COMBINED_CSV = """Agent Report
Time Range:11/05/2025~11/05/2025
Agent,Chats,Avg. Chat Time,Total Chat Time,Last Message Sent by Agent,Avg. Score,Rating Times,Score 5,Score 4,Score 3,Score 2,Score 1
Ayse Yilmaz,20,00:06:00,02:00:00,18,5.0,5,5,0,0,0,0
Zeynep Demir,8,00:03:00,00:24:00,8,4.0,2,1,1,0,0,0
"""

CHAT_LOG_CSV = """ID,Agent,Name,Department,Start Time,End Time,Duration,Waiting Time,Rating,Content,Category
c-1,Ayse Yilmaz,Visitor 1,Sales,2025-11-04 09:00:00,2025-11-04 09:05:30,05:30,00:12,5,"Hello, how can I help?",Billing
c-2,Mehmet Kaya,Visitor 2,Support,2025-11-04 10:00:00,,02:00,00:40,,Hi,
,Nobody,,,,,,,,,
"""

NO_DATE_CSV = """Agent Performance Report
Generated automatically
Agent,Chats,Avg. Chat Time,Total Chat Time
Ayse Yilmaz,3,00:02:00,00:06:00
"""


@pytest.fixture
def tmp_db(tmp_path):
    """Path to a temporary SQLite database file."""
    return tmp_path / "test-agentboard.db"


@pytest.fixture
def export_dir(tmp_path):
    """Directory holding one day's performance and rating exports plus a chat log."""
    d = tmp_path / "exports"
    d.mkdir()
    (d / "performance-1104.csv").write_text(PERFORMANCE_CSV)
    (d / "rating-1104.csv").write_text(RATING_CSV)
    (d / "chats.csv").write_text(CHAT_LOG_CSV)
    return d
