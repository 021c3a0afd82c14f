from __future__ import annotations

from typing import List

from mixpipe.models import AnalysisResult


def _fmt_items(items) -> str:
    return ", ".join(f"{col}={val}" for col, val in items)


def _fmt_ratio(ratio: float) -> str:
    return "inf" if ratio == float("inf") else f"{ratio:.2f}"


def render_md(result: AnalysisResult, title: str = "Outlier analysis") -> str:
    lines: List[str] = [
        f"# {title}",
        "",
        f"- Outliers: {result.num_outliers}",
        f"- Inliers: {result.num_inliers}",
        f"- Load time: {result.load_time_ms} ms",
        f"- Execute time: {result.execute_time_ms} ms",
        f"- Summarize time: {result.summarize_time_ms} ms",
        "",
        "## Itemsets",
    ]
    if not result.itemsets:
        lines.append("")
        lines.append("_No itemsets met the support and ratio thresholds._")
        return "\n".join(lines) + "\n"

    lines.append("")
    lines.append("| Attributes | Support | Outliers | Ratio |")
    lines.append("|---|---|---|---|")
    for it in result.itemsets:
        lines.append(f"| {_fmt_items(it.items)} | {it.support:.3f} | {it.num_records} | {_fmt_ratio(it.ratio)} |")
    return "\n".join(lines) + "\n"
