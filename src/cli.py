#!/usr/bin/env python3
"""Workshop operator CLI.

Usage:
    workshop-operator reconcile -f workshop.yaml [--loop] [--max-cycles N] [--dry-run]
    workshop-operator reconcile --name workshop [--namespace workshop-infra] [--loop]
    workshop-operator members --users 3 [--prefix cloudnative-app-]

Common options: --config <file>, --verbose, --json-output

Exit codes for reconcile: 0 Done, 2 RequeueAfter (single cycle), 1 Error.
"""

import argparse
import json
import logging
import sys
import time
from typing import Callable, Optional

from actions import ensure
from common import ReconcileResult
from config import ConfigError, OperatorConfig, load_operator_config
from kube import KubeStore
import membership
from reconciler import WorkshopReconciler
from store import MemoryStore, ObjectStore, StoreError
from workshop import Workshop, WorkshopError, fetch_workshop, load_workshop

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

EXIT_DONE = 0
EXIT_ERROR = 1
EXIT_REQUEUE = 2

# Backoff between cycles that ended in Error (--loop)
ERROR_BACKOFF_BASE = 1.0
ERROR_BACKOFF_MAX = 60.0


def _setup_logging(verbose: bool, json_output: bool) -> None:
    """Configure logging based on flags."""
    if json_output:
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        root_logger.addHandler(stderr_handler)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--config', '-c',
        help='Operator config file (default: $WORKSHOP_OPERATOR_CONFIG)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs to stderr)',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='workshop-operator',
        description='Reconcile workshop add-ons (pipelines, service mesh) on an OpenShift cluster',
    )
    subparsers = parser.add_subparsers(dest='command')

    reconcile = subparsers.add_parser('reconcile', help='Run reconciliation cycles for a Workshop')
    source = reconcile.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--file', '-f',
        help='Workshop document (YAML or JSON); created in the cluster if missing',
    )
    source.add_argument(
        '--workshop-json',
        help='Inline Workshop JSON',
    )
    source.add_argument(
        '--name', '-n',
        help='Name of a Workshop already in the cluster',
    )
    reconcile.add_argument(
        '--namespace',
        help='Workshop namespace (default: from config)',
    )
    reconcile.add_argument(
        '--loop',
        action='store_true',
        help='Keep reconciling until Done, honouring requeue delays',
    )
    reconcile.add_argument(
        '--max-cycles',
        type=int,
        default=0,
        help='Stop --loop after N cycles (0 = unlimited)',
    )
    reconcile.add_argument(
        '--dry-run',
        action='store_true',
        help='Preview stages without touching the cluster',
    )
    _common_options(reconcile)

    members = subparsers.add_parser('members', help='Print the service mesh member roster')
    members.add_argument(
        '--users', '-u',
        type=int,
        required=True,
        help='Number of workshop users',
    )
    members.add_argument(
        '--prefix', '-p',
        default='cloudnative-app-',
        help='Staging project prefix',
    )
    _common_options(members)
    return parser


def make_store(config: OperatorConfig) -> ObjectStore:
    """Object store for the configured cluster."""
    return KubeStore(config)


def exit_code(result: ReconcileResult) -> int:
    if result.is_error:
        return EXIT_ERROR
    if result.is_requeue:
        return EXIT_REQUEUE
    return EXIT_DONE


def error_backoff(consecutive_errors: int) -> float:
    """Delay before retrying after the Nth consecutive Error."""
    return min(ERROR_BACKOFF_BASE * 2 ** max(consecutive_errors - 1, 0), ERROR_BACKOFF_MAX)


def run_loop(
    reconciler: WorkshopReconciler,
    namespace: str,
    name: str,
    max_cycles: int = 0,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[ReconcileResult, int]:
    """Minimal local scheduler: re-invoke until Done or max_cycles.

    Returns:
        (last result, number of cycles run)
    """
    cycles = 0
    errors = 0
    while True:
        result = reconciler.reconcile_once(namespace, name)
        cycles += 1
        if result.is_done:
            return result, cycles
        if max_cycles and cycles >= max_cycles:
            logger.warning(f"Stopping after {cycles} cycles: {result.kind}")
            return result, cycles

        if result.is_error:
            errors += 1
            delay = error_backoff(errors)
            logger.warning(f"Cycle {cycles} failed, retrying in {delay:.0f}s: {result.error}")
        else:
            errors = 0
            delay = result.requeue_after or 0.0
            logger.info(f"Cycle {cycles} requeued, next in {delay:.0f}s")
        sleep(delay)


def _emit_json(command: str, result: ReconcileResult, reconciler: WorkshopReconciler,
               duration: float, cycles: int) -> None:
    """Emit structured JSON output."""
    output = {
        'command': command,
        'success': not result.is_error,
        'duration_seconds': round(duration, 2),
        'cycles': cycles,
        'features': [p.to_dict() for p in reconciler.progress.values()],
    }
    output.update(result.to_dict())
    print(json.dumps(output, indent=2))


def _load_source(args) -> Optional[Workshop]:
    """Workshop from --file/--workshop-json, or None for --name."""
    if args.file or args.workshop_json:
        return load_workshop(file_path=args.file, json_str=args.workshop_json)
    return None


def _register(store: ObjectStore, workshop: Workshop, config: OperatorConfig) -> tuple[str, str]:
    """Make sure a file-supplied Workshop exists in the store.

    Returns:
        (namespace, name) to reconcile
    """
    obj = workshop.to_dict()
    metadata = obj['metadata']
    if not metadata.get('namespace'):
        metadata['namespace'] = config.workshop_namespace
    # Status belongs to the cluster copy
    obj.pop('status', None)
    ensure(store, obj)
    return metadata['namespace'], metadata['name']


def reconcile_main(args) -> int:
    """Handle 'reconcile' command."""
    try:
        config = load_operator_config(args.config)
        workshop = _load_source(args)
    except (ConfigError, WorkshopError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    namespace = args.namespace or (workshop.namespace if workshop else '') or config.workshop_namespace

    if args.dry_run:
        try:
            if workshop is None:
                workshop = fetch_workshop(make_store(config), namespace, args.name)
        except (StoreError, WorkshopError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_ERROR
        reconciler = WorkshopReconciler(store=MemoryStore(), config=config)
        lines = reconciler.preview(workshop)
        if args.json_output:
            print(json.dumps({'command': 'reconcile', 'dry_run': True, 'plan': lines}, indent=2))
        else:
            print(f"Workshop {workshop.name} (dry run):")
            for line in lines:
                print(f"  {line}")
        return EXIT_DONE

    store = make_store(config)
    reconciler = WorkshopReconciler(store=store, config=config)

    name = args.name
    if workshop is not None:
        if args.namespace:
            workshop.obj['metadata']['namespace'] = args.namespace
        try:
            namespace, name = _register(store, workshop, config)
        except StoreError as e:
            print(f"Error: cannot register Workshop {workshop.name}: {e}", file=sys.stderr)
            return EXIT_ERROR

    start = time.time()
    if args.loop:
        result, cycles = run_loop(reconciler, namespace, name, args.max_cycles)
    else:
        result, cycles = reconciler.reconcile_once(namespace, name), 1
    duration = time.time() - start

    if args.json_output:
        _emit_json('reconcile', result, reconciler, duration, cycles)
    else:
        for progress in reconciler.progress.values():
            print(f"{progress.feature}: {progress.state}")
        detail = f" ({result.message})" if result.message else ''
        if result.is_requeue:
            print(f"Result: {result.kind} {result.requeue_after:g}s{detail}")
        else:
            print(f"Result: {result.kind}{detail}")

    return exit_code(result)


def members_main(args) -> int:
    """Handle 'members' command."""
    try:
        names = membership.compute(args.users, args.prefix)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.json_output:
        print(json.dumps({'members': names}, indent=2))
    else:
        for name in names:
            print(name)
    return EXIT_DONE


def main(argv: Optional[list] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_DONE

    _setup_logging(args.verbose, args.json_output)

    if args.command == 'reconcile':
        return reconcile_main(args)
    if args.command == 'members':
        return members_main(args)

    print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
    return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
