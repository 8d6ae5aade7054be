"""CLI entrypoint for yc-function-deploy."""
import sys
import argparse
import logging
from pathlib import Path

from .. import __version__
from ..deploy.domains.errors import InputValidationError
from ..deploy.domains.github import report_error
from .validators import validate_concurrency, validate_function_name

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _load_config_if_needed(needed: bool):
    """Load the config file only when inputs leave something unset."""
    if not needed:
        return None
    from ..deploy.domains.config_loader import load_config

    try:
        return load_config()
    except FileNotFoundError:
        logger.debug("No config file found")
        return None


def _credentials(args, config):
    from ..deploy.domains import github
    from ..deploy.domains.auth import select_credentials
    from ..deploy.domains.config_loader import credentials_from_config

    sa_json = args.yc_sa_json_credentials or github.get_input("yc-sa-json-credentials")
    if not sa_json and args.yc_sa_json_file:
        sa_json = Path(args.yc_sa_json_file).read_text()
    return select_credentials(
        sa_json_credentials=sa_json,
        iam_token=args.yc_iam_token or github.get_input("yc-iam-token"),
        sa_id=args.yc_sa_id or github.get_input("yc-sa-id"),
        fallback=credentials_from_config(config) if config else None,
    )


def _has_inline_credentials(args) -> bool:
    from ..deploy.domains import github

    return any([
        args.yc_sa_json_credentials, args.yc_sa_json_file, args.yc_iam_token, args.yc_sa_id,
        github.get_input("yc-sa-json-credentials"), github.get_input("yc-iam-token"),
        github.get_input("yc-sa-id"),
    ])


def _client(credentials):
    from ..deploy.domains.yc_client import YandexCloudClient

    return YandexCloudClient.from_credentials(
        iam_token=credentials.iam_token,
        service_account_key=credentials.service_account_key,
    )


def cmd_version(args):
    """Show version information."""
    print(f"yc-function-deploy {__version__}")


def cmd_deploy(args):
    """Package sources and create a new function version."""
    from ..deploy.domains import github
    from ..deploy.domains.inputs import load_deploy_inputs
    from ..deploy.workflows.deploy_function import deploy

    folder_given = bool(args.folder_id or github.get_input("folder-id"))
    config = _load_config_if_needed(not folder_given or not _has_inline_credentials(args))
    inputs = load_deploy_inputs(args, config)
    validate_function_name(inputs.function_name)

    credentials = _credentials(args, config)
    result = deploy(_client(credentials), inputs, credentials)
    print(f"Function {result.function_id}: version {result.version_id} created")


def cmd_zip(args):
    """Build the source archive without deploying it."""
    from ..deploy.domains.archive import INLINE_PAYLOAD_LIMIT, build_archive, resolve_source_root

    root = resolve_source_root(args.source_root)
    names = []
    contents = build_archive(root, args.include or [], args.exclude or [], on_entry=lambda e: names.append(e.name))

    if args.output:
        Path(args.output).write_bytes(contents)
        print(f"Archive written to: {args.output}")
    for name in names:
        print(f"  {name}")
    print(f"Entries: {len(names)}, size: {len(contents)} bytes")
    if len(contents) > INLINE_PAYLOAD_LIMIT:
        print(
            f"Warning: archive exceeds the inline limit of {INLINE_PAYLOAD_LIMIT} bytes, "
            "deploy it through a bucket",
            file=sys.stderr,
        )


def _format_secret(secret) -> str:
    return f"{secret.environment_variable}={secret.id}/{secret.version_id}/{secret.key}"


def cmd_secrets_parse(args):
    """Validate secret references without calling the API."""
    from ..deploy.domains.parsing import parse_lockbox_variables

    for secret in parse_lockbox_variables(args.references):
        print(_format_secret(secret))


def cmd_secrets_resolve(args):
    """Pin 'latest' secret references to current versions."""
    from ..deploy.domains.parsing import parse_lockbox_variables
    from ..deploy.workflows.secret_resolution import resolve_latest_lockbox_versions

    validate_concurrency(args.concurrency)
    secrets = parse_lockbox_variables(args.references)

    config = _load_config_if_needed(not args.folder_id or not _has_inline_credentials(args))
    folder_id = args.folder_id or (config or {}).get("yandex_cloud", {}).get("folder_id")
    if not folder_id:
        raise InputValidationError("Input required and not supplied: folder-id")

    client = _client(_credentials(args, config))
    for secret in resolve_latest_lockbox_versions(client, folder_id, secrets, args.concurrency):
        print(_format_secret(secret))


def cmd_config_set_path(args):
    """Set config file path preference."""
    from ..deploy.domains.preferences import set_preference

    config_path = Path(args.path).resolve()

    if not config_path.exists():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    if not config_path.is_file():
        print(f"Error: Path is not a file: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference("config_path", str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path."""
    from ..deploy.domains.config_loader import default_config_path
    from ..deploy.domains.preferences import get_preference

    config_path_pref = get_preference("config_path")

    if config_path_pref:
        config_path = Path(config_path_pref)
        found = "" if config_path.exists() else " (file not found)"
        print(f"Config path: {config_path}")
        print(f"Source: preference{found}")
    else:
        default_config = default_config_path()
        found = "" if default_config.exists() else " (file not found)"
        print(f"Config path: {default_config}")
        print(f"Source: default{found}")


def cmd_config_clear(args):
    """Clear config path preference."""
    from ..deploy.domains.config_loader import default_config_path
    from ..deploy.domains.preferences import clear_preference

    clear_preference("config_path")
    print(f"Config path preference cleared. Will use default: {default_config_path()}")


def _add_auth_arguments(parser):
    group = parser.add_argument_group("authentication")
    group.add_argument("--yc-sa-json-credentials", help="Service account authorized key JSON")
    group.add_argument("--yc-sa-json-file", help="Path to a service account authorized key JSON file")
    group.add_argument("--yc-iam-token", help="IAM token")
    group.add_argument("--yc-sa-id", help="Service account ID for Workload Identity Federation")


def _add_deploy_arguments(parser):
    parser.add_argument("--folder-id", help="Folder of the function (config file value if omitted)")
    parser.add_argument("--function-name", help="Function name, created if it doesn't exist")
    parser.add_argument("--runtime", help="Runtime, e.g. python312 or nodejs18")
    parser.add_argument("--entrypoint", help="Entry point: <file-name>.<handler-function>")
    parser.add_argument("--memory", help="Memory limit, e.g. 128Mb or 1Gb (default: 128Mb)")
    parser.add_argument("--include", action="append", help="Glob of sources to include (repeatable)")
    parser.add_argument("--exclude", action="append", help="Glob of sources to exclude (repeatable)")
    parser.add_argument("--source-root", help="Source root relative to the workspace (default: .)")
    parser.add_argument("--execution-timeout", help="Execution timeout in seconds (default: 5)")
    parser.add_argument("--environment", action="append", help="KEY=value environment variable (repeatable)")
    parser.add_argument("--service-account", help="Service account ID of the function")
    parser.add_argument("--service-account-name", help="Service account name, resolved to an ID")
    parser.add_argument("--bucket", help="Upload the package to this bucket (needed above 3.5 MiB)")
    parser.add_argument("--description", help="Version description")
    parser.add_argument("--secrets", action="append", help="ENV=secret-id/version-id/key (repeatable)")
    parser.add_argument("--network-id", help="VPC network ID")
    parser.add_argument("--tags", action="append", help="Version tag (repeatable)")
    parser.add_argument("--logs-disabled", action="store_true", default=None, help="Disable Cloud Logging")
    parser.add_argument("--logs-group-id", help="Custom log group ID")
    parser.add_argument("--log-level", help="Minimal log level: TRACE, DEBUG, INFO, WARN, ERROR, FATAL")
    parser.add_argument("--mounts", action="append", help="<mount-point>:<bucket>[/<prefix>][:ro] (repeatable)")
    parser.add_argument("--async", dest="async", action="store_true", default=None,
                        help="Enable async invocation")
    parser.add_argument("--async-sa-id", help="Service account ID for async invocations")
    parser.add_argument("--async-sa-name", help="Service account name for async invocations")
    parser.add_argument("--async-retries-count", help="Retries of failed async invocations (default: 3)")
    parser.add_argument("--async-success-ymq-arn", help="YMQ queue ARN for successful results")
    parser.add_argument("--async-success-sa-id", help="Service account ID writing to the success queue")
    parser.add_argument("--async-success-sa-name", help="Service account name writing to the success queue")
    parser.add_argument("--async-failure-ymq-arn", help="YMQ queue ARN for failed results")
    parser.add_argument("--async-failure-sa-id", help="Service account ID writing to the failure queue")
    parser.add_argument("--async-failure-sa-name", help="Service account name writing to the failure queue")
    _add_auth_arguments(parser)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="yc-function-deploy",
        description="Package and deploy Yandex Cloud Serverless Functions",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (authentication, API, filesystem, secret resolution, etc.)
  2 - Usage error (invalid arguments or input values)

Every deploy flag falls back to the matching GitHub Action input
(INPUT_<NAME> environment variable), so the tool runs unchanged as an action step.

Configuration:
  Default location: ~/.config/yc-function-deploy/config.yml
  Custom path: Set with 'yc-function-deploy config set-path <path>'
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("version", help="Show version information")

    deploy_parser = subparsers.add_parser(
        "deploy",
        help="Deploy a function version",
        description="Zip sources, find or create the function and create a new version",
    )
    _add_deploy_arguments(deploy_parser)

    zip_parser = subparsers.add_parser(
        "zip",
        help="Build the source archive only",
        description="Build the archive the deploy command would upload and report its contents",
    )
    zip_parser.add_argument("--source-root", default=".", help="Source root (default: .)")
    zip_parser.add_argument("--include", action="append", help="Glob of sources to include (repeatable)")
    zip_parser.add_argument("--exclude", action="append", help="Glob of sources to exclude (repeatable)")
    zip_parser.add_argument("-o", "--output", help="Write the archive to this file")

    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Lockbox secret references",
        description="Validate and resolve Lockbox secret references",
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")

    parse_parser = secrets_subparsers.add_parser("parse", help="Validate secret references")
    parse_parser.add_argument("references", nargs="+", help="ENV=secret-id/version-id/key")

    resolve_parser = secrets_subparsers.add_parser(
        "resolve",
        help="Pin 'latest' versions",
        description="""
Resolve 'latest' secret versions to the current version IDs.

A reference is looked up by secret ID first; if that fails, the ID is
treated as a secret name in the folder.
        """,
    )
    resolve_parser.add_argument("references", nargs="+", help="ENV=secret-id/version-id/key")
    resolve_parser.add_argument("--folder-id", help="Folder searched by secret name")
    resolve_parser.add_argument("--concurrency", type=int, default=5, help="Parallel ID lookups (default: 5)")
    _add_auth_arguments(resolve_parser)

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Manage yc-function-deploy configuration",
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    set_path_parser = config_subparsers.add_parser("set-path", help="Set config file path")
    set_path_parser.add_argument("path", help="Path to config file")
    config_subparsers.add_parser("show", help="Show current config path")
    config_subparsers.add_parser("clear", help="Clear config path preference")

    return parser, {"secrets": secrets_parser, "config": config_parser}


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors
        2 - Usage errors
    """
    parser, subparsers = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "deploy":
            cmd_deploy(args)
        elif args.command == "zip":
            cmd_zip(args)
        elif args.command == "secrets":
            if args.secrets_command == "parse":
                cmd_secrets_parse(args)
            elif args.secrets_command == "resolve":
                cmd_secrets_resolve(args)
            else:
                subparsers["secrets"].print_help()
                sys.exit(2)
        elif args.command == "config":
            if args.config_command == "set-path":
                cmd_config_set_path(args)
            elif args.config_command == "show":
                cmd_config_show(args)
            elif args.config_command == "clear":
                cmd_config_clear(args)
            else:
                subparsers["config"].print_help()
                sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except InputValidationError as e:
        report_error(str(e))
        sys.exit(2)
    except Exception as e:
        report_error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
