"""
Tests for the command-line entry point and logging setup
"""

import json
import logging
from unittest.mock import Mock

import pytest

from surface_recon import cli
from surface_recon.util.log import TargetContextFilter, current_target, log_target, setup_logging


@pytest.fixture
def quiet_cli(monkeypatch, tmp_path):
    """CLI with logging setup stubbed out and no .env or engine variables."""
    for name in ('SSRF_ALLOW_PRIVATE_IPS', 'SSRF_ALLOWED_PROTOCOLS', 'SSRF_ALLOWED_HOSTS',
                 'SSRF_BLOCKED_HOSTS', 'SSRF_MAX_REDIRECTS', 'CRAWL_MAX_PAGES', 'WILDCARD_MATCH'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cli, 'setup_logging', Mock())
    return ['--env-file', str(tmp_path / '.env')]


class TestCLI:

    def test_validate_blocked_url(self, quiet_cli, capsys):
        code = cli.main(quiet_cli + ['validate', 'http://169.254.169.254/latest/meta-data'])

        output = json.loads(capsys.readouterr().out)
        assert code == 1
        assert output['valid'] is False
        assert 'blocked' in output['error']

    def test_validate_honours_env_policy(self, quiet_cli, monkeypatch, capsys):
        monkeypatch.setenv('SSRF_ALLOWED_PROTOCOLS', 'https')

        code = cli.main(quiet_cli + ['validate', 'http://93.184.216.34/'])

        assert code == 1
        assert json.loads(capsys.readouterr().out)['error'] == "Protocol http: not allowed"

    def test_invalid_target_exit_code(self, quiet_cli):
        assert cli.main(quiet_cli + ['crawl', 'not a host']) == 2

    def test_bad_configuration_exit_code(self, quiet_cli, monkeypatch):
        monkeypatch.setenv('WILDCARD_MATCH', 'sometimes')

        assert cli.main(quiet_cli + ['validate', 'https://example.com/']) == 2

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_debug_flag_sets_level(self, quiet_cli):
        cli.main(quiet_cli + ['--debug', 'validate', 'ftp://example.com/'])

        cli.setup_logging.assert_called_once_with(None, logging.DEBUG)


class TestLogging:

    def test_target_stamped_on_records(self):
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'msg', None, None)
        context = TargetContextFilter()

        with log_target('vendor.example'):
            context.filter(record)
            assert current_target() == 'vendor.example'

        assert record.target == 'vendor.example'
        assert current_target() == '-'

    def test_setup_logging_writes_file(self, tmp_path):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        log_file = tmp_path / 'logs' / 'recon.log'

        try:
            setup_logging(log_file, logging.INFO)
            with log_target('www.vendor.example'):
                logging.getLogger('surface_recon.test').info("crawl started")
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = handlers
            root.setLevel(level)

        line = log_file.read_text().strip()
        assert '| INFO     | surface_recon.test | www.vendor.example | crawl started' in line
        assert logging.getLogger('aiohttp').level == logging.WARNING
