"""Unit tests for RunContext and credentials."""

from axiom_jobs import __version__
from axiom_jobs.config import Settings
from axiom_jobs.jobs.models import JobRef
from axiom_jobs.runtime.context import RunContext
from axiom_jobs.runtime.credentials import (
    CredentialStore,
    SettingsCredentials,
    StaticCredentials,
)


class TestRunContext:
    """Tests for request-scoped context."""

    def test_new_generates_unique_ids(self):
        """Each context should get its own request id."""
        assert RunContext.new().request_id != RunContext.new().request_id

    def test_for_job_attaches_job(self):
        """Should carry the job id and kind."""
        ctx = RunContext.for_job(JobRef.of("build", "prg-1"))

        assert ctx.job_id == "prg-1"
        assert ctx.kind == "build"
        assert ctx.label == "prg-1"

    def test_label_falls_back_to_request_id(self):
        """Without a job, the label is the request id prefix."""
        ctx = RunContext(request_id="abcdef123456")
        assert ctx.label == "abcdef12"

    def test_headers(self):
        """Should propagate request id and client version."""
        headers = RunContext(request_id="req-1").get_headers()

        assert headers == {"X-Request-Id": "req-1", "Axiom-CLI-Version": __version__}


class TestCredentials:
    """Tests for credential sources."""

    def test_static_credentials(self):
        """Empty tokens should read as missing."""
        assert StaticCredentials("abc").get_token() == "abc"
        assert StaticCredentials("").get_token() is None

    def test_settings_credentials(self):
        """Should read the key from settings."""
        creds = SettingsCredentials(Settings(_env_file=None, AXIOM_API_KEY="from-settings"))
        assert creds.get_token() == "from-settings"

    def test_protocol(self):
        """Both sources should satisfy CredentialStore."""
        assert isinstance(StaticCredentials("x"), CredentialStore)
        assert isinstance(SettingsCredentials(Settings(_env_file=None)), CredentialStore)
