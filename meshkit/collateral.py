"""Building blocks for generated command-line documentation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

import yaml

from meshkit.metrics import Exported

SelectEnvFn = Callable[[Any], bool]
SelectMetricFn = Callable[[Exported], bool]

_HTML_ESCAPES = str.maketrans(
    {"&": "&amp;", "'": "&#39;", "<": "&lt;", ">": "&gt;", '"': "&#34;"}
)

_TYPE_NAMES = {"bool": "", "float64": "float", "int64": "int", "uint64": "uint"}


def _escape(text: str) -> str:
    return text.translate(_HTML_ESCAPES)


def default_select_env(var: Any) -> bool:
    """Select every environment variable that is present."""
    return var is not None


def default_select_metric(metric: Exported) -> bool:
    """Select every exported metric."""
    return isinstance(metric, Exported)


@dataclass
class Predicates:
    """Filters applied to environment variables and metrics; None selects all."""

    select_env: SelectEnvFn | None = None
    select_metric: SelectMetricFn | None = None


def dereference_map(mapping: dict[str, str]) -> dict[str, str]:
    """Map every alias to the root of its alias tree.

    ``mapping`` holds the edges of a set of trees, from alias to target.
    """
    reverse: dict[str, list[str]] = {}
    result: dict[str, str] = {}
    for key, value in mapping.items():
        value = result.get(value, value)
        if key in reverse:
            # A new candidate root for this tree: repoint everything below it.
            deep_keys = reverse.pop(key)
            for deep_key in deep_keys:
                result[deep_key] = value
            reverse.setdefault(value, []).extend(deep_keys)
        result[key] = value
        reverse.setdefault(value, []).append(key)
    return result


def build_nested_map(flat_map: dict[str, str]) -> dict[str, Any]:
    """Expand dotted keys into nested dictionaries."""
    result: dict[str, Any] = {}
    for complex_key, value in flat_map.items():
        *parents, leaf = complex_key.split(".")
        current = result
        for part in parents:
            child = current.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"key {complex_key!r} conflicts with value at {part!r}")
            current = child
        current[leaf] = value
    return result


def normalize_id(identifier: str) -> str:
    """Turn a command path into an HTML id."""
    return identifier.replace(" ", "-").replace(".", "-")


def unquote_usage(usage: str, type_name: str) -> tuple[str, str]:
    """Extract a back-quoted name from a flag's usage text.

    Given "a `name` to show" it returns ("name", "a name to show"). Without a
    pair of back quotes the name is derived from ``type_name``, and is empty
    for booleans.
    """
    start = usage.find("`")
    if start >= 0:
        end = usage.find("`", start + 1)
        if end >= 0:
            name = usage[start + 1 : end]
            return name, usage[:start] + name + usage[end + 1 :]
    return _TYPE_NAMES.get(type_name, type_name), usage


def text_html(text: str) -> str:
    """Render text as HTML paragraphs, one per blank-line separated block."""
    return "".join(f"<p>{_escape(paragraph)}</p>\n" for paragraph in text.split("\n\n"))


def config_file_html(flag_names: Iterable[str]) -> str:
    """Describe the structured config file accepted by dotted flag names.

    Returns an empty string when no flag name contains a dot.
    """
    deep_keys = {name: "--" + name for name in flag_names if "." in name}
    if not deep_keys:
        return ""
    body = yaml.safe_dump(build_nested_map(deep_keys), default_flow_style=False, sort_keys=True)
    return (
        "<p/>Accepts deep config files, like:\n"
        f'<pre class="language-yaml"><code>{body}\n'
        "</code></pre>\n"
    )


def metrics_html(metrics: Iterable[Exported], select: SelectMetricFn | None = None) -> str:
    """Render a table of the selected exported metrics."""
    if select is None:
        select = default_select_metric
    rows = "".join(
        f"<tr><td><code>{metric.name}</code></td><td><code>{metric.type}</code></td>"
        f"<td>{metric.description}</td></tr>\n"
        for metric in metrics
        if select(metric)
    )
    return (
        '<h2 id="metrics">Exported metrics</h2>\n'
        '<table class="metrics">\n'
        "<thead>\n"
        "<tr><th>Metric Name</th><th>Type</th><th>Description</th></tr>\n"
        "</thead>\n"
        "<tbody>\n"
        f"{rows}"
        "</tbody>\n"
        "</table>\n"
    )