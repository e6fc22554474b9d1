"""Show how a query is tokenized and parsed."""

from __future__ import annotations

import json
from datetime import datetime

import click
from rich.markup import escape
from rich.tree import Tree

from pql.cli import Context, pass_context
from pql.commands._common import EXIT_QUERY_ERROR, EXIT_SUCCESS
from pql.engine.ast_nodes import (
    ASTNode,
    ComparisonNode,
    InNode,
    LogicalNode,
    NotNode,
    ast_to_dict,
)
from pql.engine.parser import parse_query
from pql.engine.tokens import Token, tokenize
from pql.exceptions import QueryParseError
from pql.utils.output import console, create_table, print_query_error


def _format_literal(value: str | int | datetime) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, str):
        return json.dumps(value)
    return str(value)


def _node_label(node: ASTNode) -> str:
    """One-line rich markup label for an AST node."""
    if isinstance(node, ComparisonNode):
        return (
            f"[query.field]{escape(node.field)}[/query.field] {escape(node.operator)} "
            f"{escape(_format_literal(node.value))} [dim]({node.value_type})[/dim]"
        )
    if isinstance(node, LogicalNode):
        return f"[query.keyword]{node.operator}[/query.keyword]"
    if isinstance(node, NotNode):
        return "[query.keyword]NOT[/query.keyword]"
    if isinstance(node, InNode):
        keyword = "NOT IN" if node.negated else "IN"
        values = ", ".join(_format_literal(v) for v in node.values)
        return (
            f"[query.field]{escape(node.field)}[/query.field] "
            f"[query.keyword]{keyword}[/query.keyword] ({escape(values)})"
        )
    keyword = "IS NOT EMPTY" if node.negated else "IS EMPTY"
    return f"[query.field]{escape(node.field)}[/query.field] [query.keyword]{keyword}[/query.keyword]"


def build_tree(node: ASTNode, tree: Tree | None = None) -> Tree:
    """Build a rich Tree mirroring the AST."""
    label = _node_label(node)
    branch = Tree(label) if tree is None else tree.add(label)
    if isinstance(node, LogicalNode):
        build_tree(node.left, branch)
        build_tree(node.right, branch)
    elif isinstance(node, NotNode):
        build_tree(node.operand, branch)
    return branch


def _print_tokens(tokens: list[Token]) -> None:
    table = create_table()
    table.add_column("Type")
    table.add_column("Value")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    for token in tokens:
        table.add_row(token.type.name, escape(token.value), str(token.start), str(token.end))
    console.print(table)


def _token_dict(token: Token) -> dict:
    return {
        "type": token.type.name,
        "value": token.value,
        "start": token.start,
        "end": token.end,
    }


@click.command("parse")
@click.argument("query", nargs=-1, required=True)
@click.option(
    "--tokens",
    "show_tokens",
    is_flag=True,
    default=False,
    help="Show the token stream instead of the syntax tree",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["tree", "json"]),
    default="tree",
    help="Output format (default: tree)",
)
@pass_context
def cli(ctx: Context, query: tuple[str, ...], show_tokens: bool, output_format: str) -> None:
    """Show the tokens or syntax tree of a query.

    Useful to check how implicit AND, NOT and parentheses group a query
    before running it.

    \b
    Examples:
      pql parse 'type = bug priority = high OR status = Done'
      pql parse --tokens 'labels NOT IN (ui, "tech debt")'
      pql parse -f json 'created > -2w'
    """
    query_string = " ".join(query)

    try:
        if show_tokens:
            tokens = tokenize(query_string)
            if output_format == "json":
                click.echo(json.dumps([_token_dict(t) for t in tokens], indent=2))
            else:
                _print_tokens(tokens)
            raise SystemExit(EXIT_SUCCESS)

        ast = parse_query(query_string)
    except QueryParseError as e:
        print_query_error(query_string, e)
        raise SystemExit(EXIT_QUERY_ERROR)

    if output_format == "json":
        click.echo(json.dumps(ast_to_dict(ast), indent=2))
    else:
        console.print(build_tree(ast))

    raise SystemExit(EXIT_SUCCESS)
