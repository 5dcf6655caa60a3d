"""``skyctl deployments``: inspect and remove worker deployments."""

from __future__ import annotations

import argparse
import os
from typing import Any

from skyctl.api import ApiClient
from skyctl.config import read_raw_config
from skyctl.domain.commands import OptionSpec, create_command, create_namespace
from skyctl.domain.errors import FatalError, UserError
from skyctl.utils.interactive import is_interactive, select
from skyctl.utils.logger import log


def resolve_account_id(context, client: ApiClient) -> str:
    account_id = os.environ.get("SKYCTL_ACCOUNT_ID", "").strip()
    if account_id:
        return account_id
    config, _ = read_raw_config(context.config_path, cwd=context.cwd)
    if isinstance(config.get("account_id"), str) and config["account_id"].strip():
        return config["account_id"].strip()
    if not is_interactive():
        raise FatalError("Must specify an account id in non-interactive mode. Set SKYCTL_ACCOUNT_ID.", 1)
    accounts = [account for account in client.fetch_result("/accounts") or [] if isinstance(account, dict)]
    if not accounts:
        raise UserError("No accounts are available with your credentials.")
    labels = [f"{account.get('name', '-')} ({account.get('id')})" for account in accounts]
    choice = select("Select an account:", labels)
    return str(accounts[labels.index(choice)]["id"])


def resolve_project_name(args: argparse.Namespace, context, client: ApiClient, account_id: str) -> str:
    if args.name:
        return args.name
    config, _ = read_raw_config(context.config_path, cwd=context.cwd)
    if isinstance(config.get("name"), str) and config["name"].strip():
        return config["name"].strip()
    if not is_interactive():
        raise FatalError("Must specify a project name in non-interactive mode.", 1)
    scripts = client.fetch_result(f"/accounts/{account_id}/workers/scripts", account_tag=account_id) or []
    names = [script.get("id") for script in scripts if isinstance(script, dict) and script.get("id")]
    if not names:
        raise UserError("No projects found for this account.")
    return select("Select a project:", names)


def _format_deployment(deployment: dict[str, Any]) -> str:
    versions = ", ".join(
        f"{version.get('version_id')} ({version.get('percentage', 100)}%)"
        for version in deployment.get("versions", [])
        if isinstance(version, dict)
    )
    return "\n".join(
        [
            f"Deployment ID: {deployment.get('id')}",
            f"Created on:    {deployment.get('created_on')}",
            f"Author:        {deployment.get('author_email', '-')}",
            f"Versions:      {versions or '-'}",
        ]
    )


def _list(args: argparse.Namespace, context) -> int:
    client = ApiClient(context.settings)
    account_id = resolve_account_id(context, client)
    name = resolve_project_name(args, context, client, account_id)
    result = client.fetch_result(
        f"/accounts/{account_id}/workers/scripts/{name}/deployments",
        account_tag=account_id,
    ) or {}
    deployments = result.get("deployments", []) if isinstance(result, dict) else []
    if not deployments:
        log(f"No deployments found for {name}.")
        return 0
    log("\n\n".join(_format_deployment(deployment) for deployment in deployments))
    return 0


def _delete(args: argparse.Namespace, context) -> int:
    client = ApiClient(context.settings)
    account_id = resolve_account_id(context, client)
    name = resolve_project_name(args, context, client, account_id)
    client.fetch_result(
        f"/accounts/{account_id}/workers/scripts/{name}/deployments/{args.deployment_id}",
        method="DELETE",
        account_tag=account_id,
    )
    log(f"Deleted deployment {args.deployment_id} of {name}.")
    return 0


_NAME = OptionSpec("name", description="Name of the worker project")

COMMANDS = [
    ("skyctl deployments", create_namespace("List and manage the deployments of a worker", status="open beta")),
    ("skyctl deployments list", create_command("List the 10 most recent deployments of a worker", _list, args=[_NAME])),
    (
        "skyctl deployments delete",
        create_command(
            "Delete a deployment of a worker",
            _delete,
            args=[
                OptionSpec("deployment-id", positional=True, optional=False, description="ID of the deployment to delete"),
                _NAME,
            ],
            status="experimental",
        ),
    ),
]

ROOTS = ("deployments",)
