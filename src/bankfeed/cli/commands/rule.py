"""Matching rule commands."""

import click

from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.domain.conditions import conditions_to_json
from bankfeed.domain.errors import DomainError
from bankfeed.domain.rules import RuleService


@click.group()
def rule_group():
    """Manage matching rules."""
    pass


@rule_group.command("add")
@click.argument("name")
@click.option(
    "--conditions",
    required=True,
    help='Condition JSON, e.g. \'{"operator": "AND", "rules": [{"field": "description", '
    '"matchType": "contains", "value": "rent"}]}\'',
)
@click.option("--priority", type=int, required=True, help="Lower numbers are evaluated first")
@click.option("--account", "account_id", help="Scope the rule to one linked account (global if omitted)")
@click.option("--property", "property_id", help="Property the rule assigns")
@click.option("--type", "entry_type", type=click.Choice(["Income", "Expense"], case_sensitive=False))
@click.option("--category", help="Category the rule assigns")
@click.option("--disabled", is_flag=True, help="Create the rule disabled")
@click.pass_context
def add_rule(
    ctx,
    name: str,
    conditions: str,
    priority: int,
    account_id: str | None,
    property_id: str | None,
    entry_type: str | None,
    category: str | None,
    disabled: bool,
):
    """Add a matching rule.

    Examples:
        bankfeed rule add "Flat 1 rent" --priority 10 --property <ID> --type Income --category Rent \\
            --conditions '{"operator": "AND", "rules": [{"field": "reference", "matchType": "contains", "value": "FLAT1"}]}'
    """
    service = RuleService(ctx.obj["db"])
    try:
        rule_id = service.create_rule(
            name=name,
            conditions=conditions,
            priority=priority,
            account_id=account_id,
            property_id=property_id,
            type=entry_type,
            category=category,
            enabled=not disabled,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created rule '{name}' (ID: {rule_id})")


@rule_group.command("list")
@click.option("--account", "account_id", help="Only rules that apply to this account")
@click.option("--verbose", "-v", is_flag=True, help="Show conditions")
@click.pass_context
def list_rules(ctx, account_id: str | None, verbose: bool):
    """List matching rules in evaluation order."""
    rules = RuleService(ctx.obj["db"]).list_rules(account_id)
    if not rules:
        click.echo("No matching rules found.")
        return

    for rule in rules:
        scope = "global" if rule.is_global else f"account {rule.account_id}"
        state = "" if rule.enabled else " (disabled)"
        assigns = ", ".join(
            part
            for part in (
                f"property={rule.property_id}" if rule.property_id else None,
                f"type={rule.type.value}" if rule.type else None,
                f"category={rule.category}" if rule.category else None,
            )
            if part
        )
        click.echo(f"[{rule.priority:5d}] {rule.name}{state} | {scope} | {assigns} | ID: {rule.id}")
        if verbose:
            if rule.conditions is None:
                click.echo("        conditions: <invalid>")
            else:
                click.echo(f"        conditions: {conditions_to_json(rule.conditions)}")


@rule_group.command("enable")
@click.argument("rule_id")
@click.pass_context
def enable_rule(ctx, rule_id: str):
    """Enable a rule."""
    try:
        RuleService(ctx.obj["db"]).set_enabled(rule_id, True)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Enabled rule {rule_id}")


@rule_group.command("disable")
@click.argument("rule_id")
@click.pass_context
def disable_rule(ctx, rule_id: str):
    """Disable a rule."""
    try:
        RuleService(ctx.obj["db"]).set_enabled(rule_id, False)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Disabled rule {rule_id}")


@rule_group.command("init-defaults")
@click.pass_context
def init_defaults(ctx):
    """Install the default global rules."""
    created = RuleService(ctx.obj["db"]).init_defaults()
    if created == 0:
        click.echo("Default rules already exist.")
    else:
        click.echo(f"Created {created} default rules.")


@rule_group.command("test")
@click.argument("rule_id")
@click.option("--description", help="Sample description")
@click.option("--counterparty", help="Sample counterparty name")
@click.option("--reference", help="Sample reference")
@click.option("--merchant", help="Sample merchant")
@click.option("--amount", type=float, help="Sample signed amount in major units")
@click.pass_context
def preview(
    ctx,
    rule_id: str,
    description: str | None,
    counterparty: str | None,
    reference: str | None,
    merchant: str | None,
    amount: float | None,
):
    """Check whether a rule matches a sample transaction."""
    sample = {
        "description": description,
        "counterparty_name": counterparty,
        "reference": reference,
        "merchant": merchant,
        "amount": amount,
    }
    try:
        result = RuleService(ctx.obj["db"]).preview(rule_id, sample)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not result.matched_rule_ids:
        click.echo("No match")
        return
    click.echo("Match")
    click.echo(f"  Property: {result.property_id or '-'}")
    click.echo(f"  Type: {result.type.value if result.type else '-'}")
    click.echo(f"  Category: {result.category or '-'}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
