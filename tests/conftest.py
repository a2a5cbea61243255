"""Shared test fixtures and configuration."""

import pytest

from app.config import Settings
from app.database import Database
from app.integrations.scraper import Scraper
from app.services.cache import CacheStore
from app.services.user_repository import UserRepository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
BASE_URL = "https://www.openpowerlifting.org"
API_URL = "https://www.openpowerlifting.org/api"


class FakeMailer:
    """Records every mail instead of sending it."""

    def __init__(self):
        self.sent: list[tuple] = []

    async def send(self, to: str, subject: str, body: str) -> bool:
        self.sent.append(("send", to, subject))
        return True

    async def send_reaching_api_limit_email(self, email: str, name: str, percent: int) -> bool:
        self.sent.append(("reaching_api_limit", email, percent))
        return True

    async def send_api_limit_reset_email(self, email: str, name: str) -> bool:
        self.sent.append(("api_limit_reset", email))
        return True

    async def send_new_api_key_email(self, email: str, name: str, key: str) -> bool:
        self.sent.append(("new_api_key", email))
        return True


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        base_url=BASE_URL,
        api_url=API_URL,
        jwt_secret="test-secret",
        refresh_delay_seconds=0,
        scheduler_enabled=False,
        email_host="",
        x_api_key="probe-key",
        domain="http://testserver",
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    assert await db.init()
    yield db
    await db.close()


@pytest.fixture
def cache_store(database):
    return CacheStore(database.session_factory)


@pytest.fixture
def scraper(cache_store, settings):
    return Scraper(cache_store, settings)


@pytest.fixture
def users(database):
    return UserRepository(database.session_factory)


@pytest.fixture
def mailer():
    return FakeMailer()


# ═══════════════ UPSTREAM SAMPLES ═══════════════

@pytest.fixture
def status_html():
    return """<html><body>
<div class="text-content">
  <h2>Server Version</h2>
  <p>Running <a href="https://gitlab.com/openpowerlifting/opl-data/-/commits/abc123def">abc123def</a></p>
  <h2>Meets</h2>
  Tracking 48213 meets.
  <h2>Federations</h2>
  <table>
    <tr><th>Federation</th><th>Meets Entered</th></tr>
    <tr><td>USAPL</td><td>3021</td></tr>
    <tr><td>USPA</td><td>2410</td></tr>
  </table>
</div>
</body></html>"""


@pytest.fixture
def mlist_html():
    return """<html><body>
<table>
  <tr><th>Fed</th><th>Date</th><th>Location</th><th>Competition</th></tr>
  <tr><td>USPA</td><td>2024-03-02</td><td>USA-TX</td><td>Texas State Open</td></tr>
  <tr><td>IPF</td><td>2024-06-10</td><td>Malta</td><td>World Classic Championships</td></tr>
  <tr><td>USAPL</td><td>2024-10-05</td><td>USA-NV</td><td>Raw Nationals</td></tr>
</table>
</body></html>"""


@pytest.fixture
def records_html():
    return """<html><body>
<div class="records-col">
  <h2>Raw Men</h2>
  <table>
    <tr><th>Weight Class</th><th>Squat</th><th>Lifter</th></tr>
    <tr><td>93</td><td>400</td><td>Lifter One</td></tr>
  </table>
</div>
<div class="records-col">
  <h3>Raw Women</h3>
  <table>
    <tr><th>Weight Class</th><th>Squat</th><th>Lifter</th></tr>
    <tr><td>63</td><td>215</td><td>Lifter Two</td></tr>
  </table>
</div>
</body></html>"""


@pytest.fixture
def meet_html():
    return """<html><body>
<h1 id="meet">1969 USPA Nationals</h1>
<p>1969-05-10, USA-PA, York
Sanctioned</p>
<table>
  <tr><th>Place</th><th>Name</th><th>Total</th></tr>
  <tr><td>1</td><td>Lifter One</td><td>800</td></tr>
</table>
</body></html>"""


@pytest.fixture
def user_html():
    return """<html><body>
<div class="mixed-content">
  <h1><span class="green">John Haack</span> (M) <a class="instagram" href="https://www.instagram.com/johnhaack/">ig</a></h1>
  <table>
    <tr><th>Equip</th><th>Squat</th><th>Bench</th><th>Deadlift</th></tr>
    <tr><td>Raw</td><td>347.5</td><td>227.5</td><td>385</td></tr>
  </table>
  <table>
    <tr><th>Place</th><th>Fed</th><th>Date</th></tr>
    <tr><td>1</td><td>USPA</td><td>2023-11-04</td></tr>
    <tr><td>1</td><td>USPA</td><td>2022-11-05</td></tr>
  </table>
</div>
</body></html>"""


def ranking_row(n: int = 1, username: str = "johnhaack") -> list:
    return [
        str(n), str(n), "John Haack", username, "johnhaack", "", "USA", "", "USPA",
        "2023-11-04", "USA", "TX", "uspa/2339", "M", "Raw", "30", "Open",
        "89.8", "90", "347.5", "227.5", "385", "960", "650.12",
    ]


@pytest.fixture
def rankings_payload():
    return {"rows": [ranking_row(1), ranking_row(2, "lifter2")], "total_length": 250}
