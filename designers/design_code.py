"""
Reconstruct re-evaluable code for designer-made designs.

A designer marks its recipe with ``# {{{`` and ``# }}}`` comment lines. The
code attached to a design is an import preamble, a parameter block assigning
each argument, and the recipe itself. Arguments listed in ``args_to_fix`` are
written into the recipe as literals instead of appearing in the parameter
block.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence
from collections import OrderedDict
import ast
import inspect
import io
import textwrap
import tokenize
import numpy as np
import pandas as pd
from research_design import Design


RECIPE_OPEN = "# {{{"
RECIPE_CLOSE = "# }}}"

PREAMBLE = """import itertools

import numpy as np

from declarations import *
from estimators import *
"""


def match_call_defaults(designer: Callable, values: Dict[str, Any]) -> "OrderedDict[str, Any]":
    """Designer arguments, in signature order, read from `values` (usually ``locals()``)."""
    arguments = OrderedDict()
    for name in inspect.signature(designer).parameters:
        if name in values:
            arguments[name] = values[name]
    return arguments


def as_literal(value: Any) -> str:
    """Python source for a parameter value."""
    if isinstance(value, np.ndarray):
        value = value.tolist()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (list, tuple)):
        items = [as_literal(item) for item in value]
        if isinstance(value, tuple):
            return "(" + ", ".join(items) + ("," if len(items) == 1 else "") + ")"
        return "[" + ", ".join(items) + "]"
    literal = repr(value)
    try:
        ast.literal_eval(literal)
    except (ValueError, SyntaxError):
        raise ValueError(f"Cannot write {value!r} as a literal in design code")
    return literal


def extract_recipe(designer: Callable) -> str:
    """Source lines between the recipe markers, dedented."""
    lines = inspect.getsource(designer).splitlines(keepends=True)
    stripped = [line.strip() for line in lines]
    if RECIPE_OPEN not in stripped or RECIPE_CLOSE not in stripped:
        raise ValueError(f"{designer.__name__} has no recipe markers")
    start = stripped.index(RECIPE_OPEN)
    end = stripped.index(RECIPE_CLOSE)
    return textwrap.dedent("".join(lines[start + 1:end]))


def inline_arguments(code: str, values: Dict[str, Any]) -> str:
    """Replace references to the given names with parenthesized literal values.

    Keyword names in calls and attribute names are left alone.
    """
    if not values:
        return code

    tokens = [tok for tok in tokenize.generate_tokens(io.StringIO(code).readline)
              if tok.type not in (tokenize.NL, tokenize.NEWLINE, tokenize.COMMENT,
                                  tokenize.INDENT, tokenize.DEDENT)]
    replacements = []
    for i, tok in enumerate(tokens):
        if tok.type != tokenize.NAME or tok.string not in values:
            continue
        previous = tokens[i - 1].string if i > 0 else ""
        following = tokens[i + 1].string if i + 1 < len(tokens) else ""
        if previous == "." or following == "=":
            continue
        replacements.append((tok.start, tok.end, "(" + as_literal(values[tok.string]) + ")"))

    lines = code.splitlines(keepends=True)
    for (row, start), (_, end), literal in reversed(replacements):
        line = lines[row - 1]
        lines[row - 1] = line[:start] + literal + line[end:]
    return "".join(lines)


def construct_design_code(designer: Callable,
                          args: Dict[str, Any],
                          args_to_fix: Optional[Sequence[str]] = None,
                          exclude_args: Optional[Sequence[str]] = None) -> str:
    """Build the code string attached to a designer's design.

    Args:
        designer: Designer function whose recipe is extracted
        args: Resolved argument values, see :func:`match_call_defaults`
        args_to_fix: Arguments written into the recipe as literals
        exclude_args: Arguments left out entirely (e.g. superseded vector defaults)

    Returns:
        Code that rebuilds the design when executed
    """
    args_to_fix = list(args_to_fix or [])
    exclude_args = set(exclude_args or []) | {"args_to_fix"}

    unknown = [name for name in args_to_fix if name not in args or name == "args_to_fix"]
    if unknown:
        raise ValueError(f"args_to_fix names unknown arguments: {', '.join(unknown)}")

    parameters = [f"{name} = {as_literal(value)}"
                  for name, value in args.items()
                  if name not in exclude_args and name not in args_to_fix]
    recipe = inline_arguments(extract_recipe(designer),
                              {name: args[name] for name in args_to_fix})

    sections = [PREAMBLE]
    if parameters:
        sections.append("# Parameters\n" + "\n".join(parameters) + "\n")
    sections.append(recipe)
    return "\n".join(sections)


def _design_name(code: str) -> str:
    for node in reversed(ast.parse(code).body):
        if isinstance(node, ast.Assign) and isinstance(node.targets[-1], ast.Name):
            return node.targets[-1].id
    raise ValueError("Design code does not assign a design")


def eval_design_code(code: str) -> Design:
    """Execute design code and return the design bound by its final assignment."""
    namespace: Dict[str, Any] = {}
    exec(compile(code, "<design code>", "exec"), namespace)
    design = namespace[_design_name(code)]
    if not isinstance(design, Design):
        raise ValueError(f"Design code produced {type(design).__name__}, not a Design")
    return design


def definitions_frame(rows: List[tuple]) -> pd.DataFrame:
    """Tabulate designer argument definitions.

    Each row is ``(name, tip, class, vector, min, max, inspector_min, inspector_step)``.
    """
    return pd.DataFrame(rows, columns=['names', 'tips', 'class', 'vector', 'min', 'max',
                                       'inspector_min', 'inspector_step'])
