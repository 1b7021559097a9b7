import json

from ..core import BlockDefinition, RenderContext, RenderNode, element, text


def render_chart(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    """
    Renders the chart data as an accessible table; the chart runtime picks up
    `data-chart` on hydration and draws over it.
    """
    a = node.attributes
    labels = a.get("labels") or []
    series = [s for s in a.get("series") or [] if isinstance(s, dict)]

    head = "".join(f"<th>{text(s.get('name', ''))}</th>" for s in series)
    rows = []
    for index, label in enumerate(labels):
        cells = []
        for s in series:
            values = s.get("data") or []
            cells.append(f"<td>{text(values[index]) if index < len(values) else ''}</td>")
        rows.append(f"<tr><th scope=\"row\">{text(label)}</th>{''.join(cells)}</tr>")

    caption = f"<caption>{text(a['title'])}</caption>" if a.get("title") else ""
    table = f"<table>{caption}<thead><tr><th></th>{head}</tr></thead><tbody>{''.join(rows)}</tbody></table>"
    config = {"type": a.get("chartType", "bar"), "labels": labels, "series": series}
    return element("div", node, table, {"data-chart": json.dumps(config, ensure_ascii=False, default=str)})


# --- DEFINITION ---
DEFINITION = BlockDefinition(
    kind="chart",
    renderer=render_chart,
    aliases=["graph"],
    base_css=".ps-chart table{width:100%;border-collapse:collapse}.ps-chart th,.ps-chart td{padding:4px 8px}",
)
