"""
SMAPI CLI - Opinionated command-line interface.

This layer provides the user-facing CLI commands, using the SDK layer
for all operations. It handles:
- Argument parsing and environment configuration
- JSON payloads from literals, files or stdin
- Rate-limit retries around every API call
- JSON output for piping/automation (indented on a TTY)
"""

import argparse
import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from smapi_cli.core.client import BASE_URLS, CLIError, ValidationError
from smapi_cli.core.polling import BUILD_POLL_POLICY, RATE_LIMIT_POLICY, WITHDRAWAL_POLICY, RetryPolicy, retry_call
from smapi_cli.core.types import PollOutcome
from smapi_cli.core.versions import SUPPORTED_VERSIONS
from smapi_cli.logging_config import get_logger, setup_logging
from smapi_cli.sdk import SMAPIClient

logger = get_logger(__name__)

DEFAULT_STAGE = "development"

# =============================================================================
# Output Helpers
# =============================================================================


def is_tty() -> bool:
    """Check if stdout is a TTY (human) or pipe (LLM/machine)."""
    return sys.stdout.isatty()


def json_output(data: Any, pretty: bool = False) -> None:
    """Print JSON output."""
    indent = 2 if pretty or is_tty() else None
    print(json.dumps(data, indent=indent, default=str))


def error_output(error: CLIError) -> None:
    """Print error and exit."""
    json_output(error.to_dict())
    sys.exit(1)


def success_output(data: Any) -> None:
    """Print success output."""
    json_output(data)


def outcome_output(outcome: PollOutcome) -> None:
    """Print a polling outcome; anything but READY exits non-zero."""
    json_output(outcome.to_dict())
    if not outcome.is_ready:
        sys.exit(1)


# =============================================================================
# Argument Helpers
# =============================================================================


def load_json_arg(value: str, name: str) -> Any:
    """Parse a JSON argument given inline, as a file path, or as - for stdin."""
    try:
        if value == "-":
            return json.load(sys.stdin)
        if value.lstrip().startswith(("{", "[")):
            return json.loads(value)
        return json.loads(Path(value).read_text())
    except FileNotFoundError:
        raise ValidationError(f"File not found for {name}: {value}")
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {name}: {e}")


def parse_params(pairs: list[str] | None) -> dict[str, str]:
    """Turn repeated key=value flags into a dict."""
    params: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValidationError(f"Invalid parameter '{pair}', expected key=value")
        params[key] = value
    return params


def stage_kwargs(client: SMAPIClient, operation: str, args: argparse.Namespace) -> dict[str, Any]:
    """Pass --stage only to operations whose route for this version has a stage."""
    if "stage" in client.profile.route(operation).params:
        return {"stage": args.stage or DEFAULT_STAGE}
    return {"stage": args.stage}


def build_policy(**kwargs: Any) -> RetryPolicy:
    """Create a RetryPolicy, reporting bad flag values as a ValidationError."""
    try:
        return RetryPolicy(**kwargs)
    except ValueError as e:
        raise ValidationError(f"Invalid polling options: {e}")


def wait_policy(args: argparse.Namespace, default: RetryPolicy = BUILD_POLL_POLICY) -> RetryPolicy:
    """Build the polling policy from --interval/--attempts."""
    return build_policy(
        interval=args.interval if args.interval is not None else default.interval,
        max_attempts=args.attempts if args.attempts is not None else default.max_attempts,
        retryable=default.retryable,
    )


def rate_limit_policy(args: argparse.Namespace) -> RetryPolicy:
    return build_policy(
        interval=RATE_LIMIT_POLICY.interval,
        max_attempts=max(1, args.retries + 1),
        retryable=RATE_LIMIT_POLICY.retryable,
    )


def run_operation(call: Callable[[], Any], args: argparse.Namespace, name: str) -> None:
    """Run an API call with rate-limit retries and print its result."""
    outcome = retry_call(call, rate_limit_policy(args), name=name)
    if outcome.is_ready:
        success_output(outcome.response)
    else:
        error_output(outcome.error)


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_token_refresh(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Exchange a refresh token for an access token."""
    refresh_token = args.refresh_token or os.environ.get("SMAPI_REFRESH_TOKEN")
    client_id = args.client_id or os.environ.get("SMAPI_CLIENT_ID")
    client_secret = args.client_secret or os.environ.get("SMAPI_CLIENT_SECRET")
    if not (refresh_token and client_id and client_secret):
        raise ValidationError(
            "Refresh token, client ID and client secret are required. "
            "Set SMAPI_REFRESH_TOKEN, SMAPI_CLIENT_ID and SMAPI_CLIENT_SECRET or use the flags"
        )
    run_operation(lambda: client.tokens.refresh(refresh_token, client_id, client_secret), args, "token refresh")


def cmd_vendors_list(client: SMAPIClient, args: argparse.Namespace) -> None:
    """List vendors."""
    run_operation(client.vendors.list, args, "vendors list")


def cmd_skills_create(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Create a skill."""
    manifest = load_json_arg(args.manifest, "manifest")
    run_operation(lambda: client.skills.create(args.vendor_id, manifest), args, "skills create")


def cmd_skills_get(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get a skill manifest."""
    stage = stage_kwargs(client, "skills.get_manifest", args)
    run_operation(lambda: client.skills.get_manifest(args.skill_id, **stage), args, "skills get")


def cmd_skills_update(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Update a skill manifest."""
    manifest = load_json_arg(args.manifest, "manifest")
    stage = stage_kwargs(client, "skills.update", args)
    run_operation(lambda: client.skills.update(args.skill_id, manifest=manifest, **stage), args, "skills update")


def cmd_skills_status(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get skill build status."""
    run_operation(lambda: client.skills.status(args.skill_id), args, "skills status")


def cmd_skills_list(client: SMAPIClient, args: argparse.Namespace) -> None:
    """List skills of a vendor."""
    run_operation(
        lambda: client.skills.list(args.vendor_id, args.max_results, args.next_token),
        args,
        "skills list",
    )


def cmd_skills_delete(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Delete a skill."""
    run_operation(lambda: client.skills.delete(args.skill_id), args, "skills delete")


def cmd_skills_wait(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Wait for a skill build to finish."""
    outcome_output(client.skills.wait_until_ready(args.skill_id, wait_policy(args), rate_limit_policy(args)))


def cmd_model_get(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get an interaction model."""
    stage = stage_kwargs(client, "interaction_model.get", args)
    run_operation(
        lambda: client.interaction_model.get(args.skill_id, locale=args.locale, **stage), args, "model get"
    )


def cmd_model_etag(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get the interaction model etag."""
    stage = stage_kwargs(client, "interaction_model.get_etag", args)
    run_operation(
        lambda: client.interaction_model.get_etag(args.skill_id, locale=args.locale, **stage), args, "model etag"
    )


def cmd_model_update(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Update an interaction model."""
    model = load_json_arg(args.model, "model")
    stage = stage_kwargs(client, "interaction_model.update", args)
    run_operation(
        lambda: client.interaction_model.update(
            args.skill_id, locale=args.locale, interaction_model=model, **stage
        ),
        args,
        "model update",
    )


def cmd_model_status(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get the interaction model build status."""
    run_operation(lambda: client.interaction_model.get_status(args.skill_id, args.locale), args, "model status")


def cmd_model_wait(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Wait for an interaction model build to finish."""
    outcome_output(
        client.interaction_model.wait_until_built(
            args.skill_id, args.locale, wait_policy(args), rate_limit_policy(args)
        )
    )


def cmd_linking_update(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Update account linking."""
    request = load_json_arg(args.request, "request")
    stage = stage_kwargs(client, "account_linking.update", args)
    run_operation(
        lambda: client.account_linking.update(args.skill_id, account_linking_request=request, **stage),
        args,
        "linking update",
    )


def cmd_linking_get(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Read account linking info."""
    stage = stage_kwargs(client, "account_linking.read_info", args)
    run_operation(lambda: client.account_linking.read_info(args.skill_id, **stage), args, "linking get")


def cmd_linking_delete(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Delete account linking."""
    stage = args.stage or DEFAULT_STAGE
    run_operation(lambda: client.account_linking.delete(args.skill_id, stage), args, "linking delete")


def cmd_enablement(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Enable, disable or check enablement of a skill."""
    operation = getattr(client.skill_enablement, args.action)
    stage = args.stage or DEFAULT_STAGE
    run_operation(lambda: operation(args.skill_id, stage), args, f"enablement {args.action}")


def cmd_cert_submit(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Submit a skill for certification."""
    run_operation(lambda: client.skill_certification.submit(args.skill_id), args, "cert submit")


def cmd_cert_status(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get certification status."""
    run_operation(
        lambda: client.skill_certification.status(args.vendor_id, args.skill_id), args, "cert status"
    )


def cmd_cert_withdraw(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Withdraw a skill from certification."""
    if args.wait:
        outcome_output(
            client.skill_certification.withdraw_and_wait(
                args.skill_id, args.reason, args.message, wait_policy(args, WITHDRAWAL_POLICY)
            )
        )
        return
    run_operation(
        lambda: client.skill_certification.withdraw(args.skill_id, args.reason, args.message),
        args,
        "cert withdraw",
    )


def cmd_cert_wait(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Wait for a publication status."""
    outcome_output(
        client.skill_certification.wait_for_status(
            args.vendor_id, args.skill_id, args.expected, wait_policy(args), rate_limit_policy(args)
        )
    )


def cmd_test_validate(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Start a validation run."""
    stage = args.stage or DEFAULT_STAGE
    run_operation(lambda: client.skill_testing.validate(args.skill_id, stage, args.locales), args, "test validate")


def cmd_test_validation(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get (or wait for) a validation result."""
    stage = args.stage or DEFAULT_STAGE
    if args.wait:
        outcome_output(
            client.skill_testing.wait_for_validation(
                args.skill_id, stage, args.validation_id, wait_policy(args), rate_limit_policy(args)
            )
        )
        return
    run_operation(
        lambda: client.skill_testing.validation_status(args.skill_id, stage, args.validation_id),
        args,
        "test validation",
    )


def cmd_test_invoke(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Invoke a skill endpoint."""
    request = load_json_arg(args.request, "request")
    run_operation(
        lambda: client.skill_testing.invoke(args.skill_id, args.endpoint_region, request), args, "test invoke"
    )


def cmd_test_simulate(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Simulate an utterance."""
    run_operation(
        lambda: client.skill_testing.simulate(args.skill_id, args.content, args.locale), args, "test simulate"
    )


def cmd_test_simulation(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Get (or wait for) a simulation result."""
    if args.wait:
        outcome_output(
            client.skill_testing.wait_for_simulation(
                args.skill_id, args.request_id, wait_policy(args), rate_limit_policy(args)
            )
        )
        return
    run_operation(
        lambda: client.skill_testing.simulation_status(args.skill_id, args.request_id), args, "test simulation"
    )


def cmd_intents_list(client: SMAPIClient, args: argparse.Namespace) -> None:
    """List intent request history."""
    params: dict[str, Any] = {"skillId": args.skill_id, **parse_params(args.param)}
    run_operation(lambda: client.intent_requests.list(params), args, "intents list")


def cmd_custom(client: SMAPIClient, args: argparse.Namespace) -> None:
    """Call an arbitrary path."""
    operation = getattr(client.custom, args.method)
    name = f"custom {args.method}"
    if args.method in ("head", "delete"):
        run_operation(lambda: operation(args.path), args, name)
    elif args.method == "get":
        params = parse_params(args.param)
        run_operation(lambda: operation(args.path, params), args, name)
    else:
        data = load_json_arg(args.data, "data") if args.data else None
        run_operation(lambda: operation(args.path, data), args, name)


# =============================================================================
# Main CLI
# =============================================================================


def _add_wait_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--interval", type=float, help="Seconds between checks")
    parser.add_argument("--attempts", type=int, help="Maximum number of checks")


def _add_stage_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--stage", "-s", help=f"Skill stage (v1 only, default: {DEFAULT_STAGE})")


def create_parser() -> argparse.ArgumentParser:  # noqa: PLR0915
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="smapi",
        description="SMAPI CLI - Command-line interface for the Skill Management API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration:
  SMAPI_ACCESS_TOKEN   Access token for API calls
  SMAPI_REFRESH_TOKEN, SMAPI_CLIENT_ID, SMAPI_CLIENT_SECRET
                       Used by 'token refresh', and to obtain an access
                       token when SMAPI_ACCESS_TOKEN is not set
  SMAPI_VERSION, SMAPI_REGION, SMAPI_BASE_URL, SMAPI_LOG_LEVEL

Examples:
  smapi vendors list
  smapi skills create <vendor_id> manifest.json
  smapi skills wait <skill_id> --interval 10 --attempts 10
  smapi --api-version v0 model update <skill_id> en-US model.json
  smapi custom get /v1/skills/<skill_id>/status --param resource=manifest
""",
    )
    parser.add_argument(
        "--api-version",
        "-V",
        default=os.environ.get("SMAPI_VERSION"),
        help=f"API version ({', '.join(v.value for v in SUPPORTED_VERSIONS)}; default: newest)",
    )
    parser.add_argument(
        "--region",
        "-r",
        default=os.environ.get("SMAPI_REGION"),
        help=f"Region ({', '.join(BASE_URLS)}; default: NA)",
    )
    parser.add_argument("--base-url", default=os.environ.get("SMAPI_BASE_URL"), help="Base URL override")
    parser.add_argument("--retries", type=int, default=10, help="Retries after HTTP 429 (default: 10)")
    parser.add_argument("--log-level", default=os.environ.get("SMAPI_LOG_LEVEL", "WARNING"), help="Log level")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ========== Token ==========
    token = subparsers.add_parser("token", help="Access token management")
    token.set_defaults(func=lambda _c, _a: token.print_help())
    token_sub = token.add_subparsers(dest="subcommand")

    t_refresh = token_sub.add_parser("refresh", help="Exchange a refresh token for an access token")
    t_refresh.add_argument("--refresh-token", help="Refresh token (or SMAPI_REFRESH_TOKEN)")
    t_refresh.add_argument("--client-id", help="Client ID (or SMAPI_CLIENT_ID)")
    t_refresh.add_argument("--client-secret", help="Client secret (or SMAPI_CLIENT_SECRET)")
    t_refresh.set_defaults(func=cmd_token_refresh, needs_token=False)

    # ========== Vendors ==========
    vendors = subparsers.add_parser("vendors", help="Vendor operations")
    vendors.set_defaults(func=lambda _c, _a: vendors.print_help())
    vendors_sub = vendors.add_subparsers(dest="subcommand")

    v_list = vendors_sub.add_parser("list", help="List vendors")
    v_list.set_defaults(func=cmd_vendors_list)

    # ========== Skills ==========
    skills = subparsers.add_parser("skills", help="Skill lifecycle")
    skills.set_defaults(func=lambda _c, _a: skills.print_help())
    skills_sub = skills.add_subparsers(dest="subcommand")

    s_create = skills_sub.add_parser("create", help="Create a skill")
    s_create.add_argument("vendor_id", help="Vendor ID")
    s_create.add_argument("manifest", help="Manifest JSON, file path, or - for stdin")
    s_create.set_defaults(func=cmd_skills_create)

    s_get = skills_sub.add_parser("get", help="Get the skill manifest")
    s_get.add_argument("skill_id", help="Skill ID")
    _add_stage_flag(s_get)
    s_get.set_defaults(func=cmd_skills_get)

    s_update = skills_sub.add_parser("update", help="Update the skill manifest")
    s_update.add_argument("skill_id", help="Skill ID")
    s_update.add_argument("manifest", help="Manifest JSON, file path, or - for stdin")
    _add_stage_flag(s_update)
    s_update.set_defaults(func=cmd_skills_update)

    s_status = skills_sub.add_parser("status", help="Get the skill build status")
    s_status.add_argument("skill_id", help="Skill ID")
    s_status.set_defaults(func=cmd_skills_status)

    s_list = skills_sub.add_parser("list", help="List skills of a vendor")
    s_list.add_argument("vendor_id", help="Vendor ID")
    s_list.add_argument("--max-results", "-m", type=int, help="Page size")
    s_list.add_argument("--next-token", "-n", help="Token of the page to fetch")
    s_list.set_defaults(func=cmd_skills_list)

    s_delete = skills_sub.add_parser("delete", help="Delete a skill")
    s_delete.add_argument("skill_id", help="Skill ID")
    s_delete.set_defaults(func=cmd_skills_delete)

    s_wait = skills_sub.add_parser("wait", help="Wait for the skill build to finish")
    s_wait.add_argument("skill_id", help="Skill ID")
    _add_wait_flags(s_wait)
    s_wait.set_defaults(func=cmd_skills_wait)

    # ========== Interaction Model ==========
    model = subparsers.add_parser("model", help="Interaction model operations")
    model.set_defaults(func=lambda _c, _a: model.print_help())
    model_sub = model.add_subparsers(dest="subcommand")

    m_get = model_sub.add_parser("get", help="Get the interaction model")
    m_get.add_argument("skill_id", help="Skill ID")
    m_get.add_argument("locale", help="Locale, e.g. en-US")
    _add_stage_flag(m_get)
    m_get.set_defaults(func=cmd_model_get)

    m_etag = model_sub.add_parser("etag", help="Get the interaction model etag")
    m_etag.add_argument("skill_id", help="Skill ID")
    m_etag.add_argument("locale", help="Locale, e.g. en-US")
    _add_stage_flag(m_etag)
    m_etag.set_defaults(func=cmd_model_etag)

    m_update = model_sub.add_parser("update", help="Update the interaction model")
    m_update.add_argument("skill_id", help="Skill ID")
    m_update.add_argument("locale", help="Locale, e.g. en-US")
    m_update.add_argument("model", help="Interaction model JSON, file path, or - for stdin")
    _add_stage_flag(m_update)
    m_update.set_defaults(func=cmd_model_update)

    m_status = model_sub.add_parser("status", help="Get the model build status")
    m_status.add_argument("skill_id", help="Skill ID")
    m_status.add_argument("locale", help="Locale, e.g. en-US")
    m_status.set_defaults(func=cmd_model_status)

    m_wait = model_sub.add_parser("wait", help="Wait for the model build to finish")
    m_wait.add_argument("skill_id", help="Skill ID")
    m_wait.add_argument("locale", help="Locale, e.g. en-US")
    _add_wait_flags(m_wait)
    m_wait.set_defaults(func=cmd_model_wait)

    # ========== Account Linking ==========
    linking = subparsers.add_parser("linking", help="Account linking operations")
    linking.set_defaults(func=lambda _c, _a: linking.print_help())
    linking_sub = linking.add_subparsers(dest="subcommand")

    l_update = linking_sub.add_parser("update", help="Update account linking")
    l_update.add_argument("skill_id", help="Skill ID")
    l_update.add_argument("request", help="Account linking request JSON, file path, or - for stdin")
    _add_stage_flag(l_update)
    l_update.set_defaults(func=cmd_linking_update)

    l_get = linking_sub.add_parser("get", help="Read account linking info")
    l_get.add_argument("skill_id", help="Skill ID")
    _add_stage_flag(l_get)
    l_get.set_defaults(func=cmd_linking_get)

    l_delete = linking_sub.add_parser("delete", help="Delete account linking")
    l_delete.add_argument("skill_id", help="Skill ID")
    _add_stage_flag(l_delete)
    l_delete.set_defaults(func=cmd_linking_delete)

    # ========== Enablement ==========
    enablement = subparsers.add_parser("enablement", help="Skill enablement for testing")
    enablement.add_argument("action", choices=["enable", "status", "disable"], help="Action")
    enablement.add_argument("skill_id", help="Skill ID")
    _add_stage_flag(enablement)
    enablement.set_defaults(func=cmd_enablement)

    # ========== Certification ==========
    cert = subparsers.add_parser("cert", help="Skill certification")
    cert.set_defaults(func=lambda _c, _a: cert.print_help())
    cert_sub = cert.add_subparsers(dest="subcommand")

    c_submit = cert_sub.add_parser("submit", help="Submit for certification")
    c_submit.add_argument("skill_id", help="Skill ID")
    c_submit.set_defaults(func=cmd_cert_submit)

    c_status = cert_sub.add_parser("status", help="Get publication status")
    c_status.add_argument("vendor_id", help="Vendor ID")
    c_status.add_argument("skill_id", help="Skill ID")
    c_status.set_defaults(func=cmd_cert_status)

    c_withdraw = cert_sub.add_parser("withdraw", help="Withdraw from certification")
    c_withdraw.add_argument("skill_id", help="Skill ID")
    c_withdraw.add_argument("reason", help="Reason code, e.g. TEST_SKILL")
    c_withdraw.add_argument("--message", help="Free-form message")
    c_withdraw.add_argument("--wait", action="store_true", help="Retry until the withdrawal is accepted")
    _add_wait_flags(c_withdraw)
    c_withdraw.set_defaults(func=cmd_cert_withdraw)

    c_wait = cert_sub.add_parser("wait", help="Wait for a publication status (v1 only)")
    c_wait.add_argument("vendor_id", help="Vendor ID")
    c_wait.add_argument("skill_id", help="Skill ID")
    c_wait.add_argument("--expected", default="CERTIFICATION", help="Publication status to wait for")
    _add_wait_flags(c_wait)
    c_wait.set_defaults(func=cmd_cert_wait)

    # ========== Testing ==========
    test = subparsers.add_parser("test", help="Skill validation, invocation and simulation")
    test.set_defaults(func=lambda _c, _a: test.print_help())
    test_sub = test.add_subparsers(dest="subcommand")

    te_validate = test_sub.add_parser("validate", help="Start a validation run")
    te_validate.add_argument("skill_id", help="Skill ID")
    te_validate.add_argument("locales", nargs="+", help="Locales to validate")
    _add_stage_flag(te_validate)
    te_validate.set_defaults(func=cmd_test_validate)

    te_validation = test_sub.add_parser("validation", help="Get a validation result")
    te_validation.add_argument("skill_id", help="Skill ID")
    te_validation.add_argument("validation_id", help="Validation ID")
    te_validation.add_argument("--wait", action="store_true", help="Wait for a terminal status")
    _add_stage_flag(te_validation)
    _add_wait_flags(te_validation)
    te_validation.set_defaults(func=cmd_test_validation)

    te_invoke = test_sub.add_parser("invoke", help="Invoke the skill endpoint")
    te_invoke.add_argument("skill_id", help="Skill ID")
    te_invoke.add_argument("endpoint_region", help="Endpoint region, e.g. Default or NA")
    te_invoke.add_argument("request", help="Skill request JSON, file path, or - for stdin")
    te_invoke.set_defaults(func=cmd_test_invoke)

    te_simulate = test_sub.add_parser("simulate", help="Simulate an utterance")
    te_simulate.add_argument("skill_id", help="Skill ID")
    te_simulate.add_argument("content", help="Utterance text")
    te_simulate.add_argument("locale", help="Locale, e.g. en-US")
    te_simulate.set_defaults(func=cmd_test_simulate)

    te_simulation = test_sub.add_parser("simulation", help="Get a simulation result")
    te_simulation.add_argument("skill_id", help="Skill ID")
    te_simulation.add_argument("request_id", help="Simulation ID")
    te_simulation.add_argument("--wait", action="store_true", help="Wait for a terminal status")
    _add_wait_flags(te_simulation)
    te_simulation.set_defaults(func=cmd_test_simulation)

    # ========== Intent Requests ==========
    intents = subparsers.add_parser("intents", help="Intent request history")
    intents.set_defaults(func=lambda _c, _a: intents.print_help())
    intents_sub = intents.add_subparsers(dest="subcommand")

    i_list = intents_sub.add_parser("list", help="List intent requests")
    i_list.add_argument("skill_id", help="Skill ID")
    i_list.add_argument("--param", "-p", action="append", help="Query filter as key=value (repeatable)")
    i_list.set_defaults(func=cmd_intents_list)

    # ========== Custom ==========
    custom = subparsers.add_parser("custom", help="Call an arbitrary API path")
    custom.add_argument("method", choices=["head", "get", "post", "put", "delete"], help="HTTP method")
    custom.add_argument("path", help="Path relative to the base URL, e.g. /v1/vendors")
    custom.add_argument("--data", "-d", help="Request body JSON, file path, or - for stdin (post/put)")
    custom.add_argument("--param", "-p", action="append", help="Query parameter as key=value (get)")
    custom.set_defaults(func=cmd_custom)

    return parser


def build_client(args: argparse.Namespace) -> SMAPIClient:
    """Create the client from flags and environment."""
    client = SMAPIClient(
        version=args.api_version,
        region=args.region,
        access_token=os.environ.get("SMAPI_ACCESS_TOKEN") or None,
        base_url=args.base_url or None,
    )
    if client.access_token or not getattr(args, "needs_token", True):
        return client

    refresh_token = os.environ.get("SMAPI_REFRESH_TOKEN")
    client_id = os.environ.get("SMAPI_CLIENT_ID")
    client_secret = os.environ.get("SMAPI_CLIENT_SECRET")
    if refresh_token and client_id and client_secret:
        logger.info("refreshing_access_token")
        outcome = retry_call(
            lambda: client.tokens.refresh(refresh_token, client_id, client_secret),
            rate_limit_policy(args),
            name="token refresh",
        )
        if not outcome.is_ready:
            error_output(outcome.error)
    return client


def main() -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(args.log_level, json_format=args.log_json)

    try:
        client = build_client(args)
        # Run command (all subparsers have default funcs that print help)
        args.func(client, args)
    except CLIError as e:
        error_output(e)


if __name__ == "__main__":
    main()
