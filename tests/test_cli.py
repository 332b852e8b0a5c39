"""Tests for CLI module."""

import json
from unittest.mock import MagicMock, patch

import pytest
import yaml

import cli
from common import ReconcileResult
from store import StoreError


@pytest.fixture(autouse=True)
def clean_env():
    """No operator config or cluster settings leak in from the environment."""
    with patch.dict('os.environ', {}, clear=True), patch('cli._setup_logging'):
        yield


@pytest.fixture
def workshop_file(tmp_path, workshop_obj):
    path = tmp_path / 'workshop.yaml'
    path.write_text(yaml.safe_dump(workshop_obj))
    return path


@pytest.fixture
def use_store(store):
    """Route the CLI to the in-memory store."""
    with patch('cli.make_store', return_value=store) as mock_make:
        yield mock_make


class TestMembers:
    """Tests for the members command."""

    def test_prints_roster(self, capsys):
        rc = cli.main(['members', '--users', '3', '--prefix', 'lab-'])
        assert rc == 0
        assert capsys.readouterr().out.splitlines() == ['lab-1', 'lab-2', 'lab-3']

    def test_json_output(self, capsys):
        rc = cli.main(['members', '--users', '2', '--json-output'])
        assert rc == 0
        assert json.loads(capsys.readouterr().out) == {'members': ['cloudnative-app-1', 'cloudnative-app-2']}

    def test_negative_users(self, capsys):
        assert cli.main(['members', '--users', '-1']) == 1
        assert 'Error' in capsys.readouterr().err


class TestReconcileCommand:
    """Tests for the reconcile command."""

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 0
        assert 'workshop-operator' in capsys.readouterr().out

    def test_requires_source(self):
        with pytest.raises(SystemExit):
            cli.main(['reconcile'])

    def test_dry_run_touches_nothing(self, workshop_file, use_store, capsys):
        rc = cli.main(['reconcile', '-f', str(workshop_file), '--dry-run'])
        assert rc == 0
        out = capsys.readouterr().out
        assert 'dry run' in out
        assert '[resources-member-roll]' in out
        use_store.assert_not_called()

    def test_pending_exits_requeue(self, workshop_file, use_store, store, capsys):
        rc = cli.main(['reconcile', '-f', str(workshop_file)])
        assert rc == cli.EXIT_REQUEUE
        out = capsys.readouterr().out
        assert 'pipeline: PlanPending' in out
        assert 'RequeueAfter 5s' in out
        assert ('Workshop', 'workshop-infra', 'workshop') in store

    def test_converged_exits_done_with_json(self, workshop_file, use_store, store, cluster, config, capsys):
        cluster.publish_all_plans(config)
        cluster.mesh_workloads(config)

        rc = cli.main(['reconcile', '-f', str(workshop_file), '--json-output'])

        assert rc == cli.EXIT_DONE
        output = json.loads(capsys.readouterr().out)
        assert output['result'] == 'Done'
        assert output['success'] is True
        assert [f['state'] for f in output['features']] == ['Complete', 'Complete']
        assert store.get('Workshop', 'workshop-infra', 'workshop')['status'] == {
            'pipeline': 'Installed',
            'serviceMesh': 'Installed',
        }

    def test_store_failure_exits_error(self, workshop_file, use_store, store):
        store.fail('create', 'Subscription', StoreError('forbidden', status=403))
        assert cli.main(['reconcile', '-f', str(workshop_file)]) == cli.EXIT_ERROR

    def test_namespace_for_file_without_one(self, tmp_path, workshop_obj, use_store, store):
        del workshop_obj['metadata']['namespace']
        path = tmp_path / 'workshop.yaml'
        path.write_text(yaml.safe_dump(workshop_obj))
        cli.main(['reconcile', '-f', str(path), '--namespace', 'labs'])
        assert ('Workshop', 'labs', 'workshop') in store

    def test_by_name_missing_is_done(self, use_store):
        assert cli.main(['reconcile', '--name', 'workshop']) == cli.EXIT_DONE

    def test_bad_workshop_file(self, tmp_path, capsys):
        path = tmp_path / 'bad.yaml'
        path.write_text('kind: ConfigMap\nmetadata:\n  name: x\n')
        assert cli.main(['reconcile', '-f', str(path)]) == cli.EXIT_ERROR
        assert 'Expected kind' in capsys.readouterr().err

    def test_missing_config_file(self, workshop_file):
        assert cli.main(['reconcile', '-f', str(workshop_file), '--config', '/nonexistent.yaml']) == cli.EXIT_ERROR


class TestRunLoop:
    """Tests for the local scheduler."""

    def test_honours_requeue_until_done(self):
        reconciler = MagicMock()
        reconciler.reconcile_once.side_effect = [
            ReconcileResult.requeue(5.0),
            ReconcileResult.requeue(1.0),
            ReconcileResult.done(),
        ]
        sleep = MagicMock()

        result, cycles = cli.run_loop(reconciler, 'ns', 'workshop', sleep=sleep)

        assert result.is_done
        assert cycles == 3
        assert [c[0][0] for c in sleep.call_args_list] == [5.0, 1.0]

    def test_error_backs_off(self):
        reconciler = MagicMock()
        reconciler.reconcile_once.side_effect = [
            ReconcileResult.failed('a'),
            ReconcileResult.failed('b'),
            ReconcileResult.done(),
        ]
        sleep = MagicMock()
        cli.run_loop(reconciler, 'ns', 'workshop', sleep=sleep)
        assert [c[0][0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_max_cycles(self):
        reconciler = MagicMock()
        reconciler.reconcile_once.return_value = ReconcileResult.requeue(5.0)
        sleep = MagicMock()

        result, cycles = cli.run_loop(reconciler, 'ns', 'workshop', max_cycles=2, sleep=sleep)

        assert result.is_requeue
        assert cycles == 2
        assert sleep.call_count == 1

    def test_backoff_capped(self):
        assert cli.error_backoff(1) == 1.0
        assert cli.error_backoff(3) == 4.0
        assert cli.error_backoff(20) == cli.ERROR_BACKOFF_MAX


class TestExitCode:
    def test_mapping(self):
        assert cli.exit_code(ReconcileResult.done()) == 0
        assert cli.exit_code(ReconcileResult.requeue(1.0)) == 2
        assert cli.exit_code(ReconcileResult.failed('x')) == 1
