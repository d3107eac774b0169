"""
Presentation of a finished run.

Decides what is shown for a run (tables, per-window figures, an HTML
spectrum report); the drawing itself is done by ``plotting``.
"""

from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import pandas as pd

from .config import Config, default_config

if TYPE_CHECKING:
    from .pipeline import HRVRunResult, WindowPlotData
    from .progress import ProgressTimer


# Figure kinds, in the order they are drawn for every window
FIGURE_KINDS = ("ecgrr", "filtrr", "poincare", "time_hist", "freq_spectrum", "nonlinear")


@dataclass
class FigureSpec:
    """One figure to draw."""
    name: str
    kind: str
    window: int
    data: Any
    options: Dict[str, Any] = field(default_factory=dict)


def format_tables(metrics: pd.DataFrame, stats: Optional[pd.DataFrame]) -> str:
    """Metrics table, with statistics rows appended when there is more than one window."""
    with pd.option_context("display.max_columns", None, "display.width", 200):
        if stats is not None and len(metrics) > 1:
            combined = pd.concat([metrics.astype("float64"), stats])
            combined.index = [str(i) for i in combined.index]
            return combined.to_string(float_format=lambda v: f"{v:.3f}")
        return metrics.to_string(float_format=lambda v: f"{v:.3f}")


def plan_figures(
    record: str,
    plot_datas: Dict[int, "WindowPlotData"],
    window_count: int,
    config: Config = default_config,
) -> List[FigureSpec]:
    """
    List the figures to draw for a run.

    Parameters
    ----------
    record : str
        Record identifier; its file stem goes into every title.
    plot_datas : dict
        Window number -> plot bundles. Windows without a bundle are skipped.
    window_count : int
        Total number of windows in the record (for the ``i/N`` title part).
    config : Config
        FILTER_POINCARE selects the Poincaré source: the RR filter's bundle
        when enabled, else the nonlinear stage's.
    """
    stem = pathlib.Path(record).stem
    specs: List[FigureSpec] = []

    for window in sorted(plot_datas):
        pd_win = plot_datas[window]
        if pd_win is None:
            continue
        prefix = f"[{stem} {window}/{window_count}]"

        if config.FILTER_POINCARE:
            poincare = pd_win.filtrr["poincare"]
        else:
            poincare = pd_win.nl["poincare"]

        entries = (
            ("ecgrr", pd_win.ecgrr, {}),
            ("filtrr", pd_win.filtrr["filtrr"], {}),
            ("poincare", poincare, {}),
            ("time_hist", pd_win.time, {}),
            ("freq_spectrum", pd_win.freq, {"detailed_legend": True, "peaks": True}),
            ("nonlinear", pd_win.nl, {}),
        )
        for kind, data, options in entries:
            specs.append(FigureSpec(
                name=f"{prefix} {data['name']}",
                kind=kind,
                window=window,
                data=data,
                options=options,
            ))
    return specs


def _draw(spec: FigureSpec):
    from . import plotting

    if spec.kind == "nonlinear":
        fig, axes = plotting.new_figure(spec.name, nrows=3)
        plotting.plot_dfa_fn(axes[0], spec.data["dfa"])
        plotting.plot_hrv_nl_beta(axes[1], spec.data["beta"])
        plotting.plot_mse(axes[2], spec.data["mse"])
    else:
        draw = {
            "ecgrr": plotting.plot_ecgrr,
            "filtrr": plotting.plot_filtrr,
            "poincare": plotting.plot_poincare_ellipse,
            "time_hist": plotting.plot_hrv_time_hist,
            "freq_spectrum": plotting.plot_hrv_freq_spectrum,
        }[spec.kind]
        fig, axes = plotting.new_figure(spec.name)
        draw(axes[0], spec.data, **spec.options)
    fig.tight_layout()
    return fig


def render_figures(
    specs: List[FigureSpec],
    renderer: Optional[Callable[[FigureSpec], Any]] = None,
) -> List[Any]:
    """Draw every spec in order; returns what the renderer returns (matplotlib figures by default)."""
    renderer = renderer or _draw
    return [renderer(spec) for spec in specs]


def present(
    result: "HRVRunResult",
    *,
    timer: Optional["ProgressTimer"] = None,
    show_tables: bool = True,
    plot: bool = True,
    renderer: Optional[Callable[[FigureSpec], Any]] = None,
) -> List[Any]:
    """Print the tables and/or draw the figures of a finished run."""
    log = timer.log if timer is not None else (lambda message: None)

    if show_tables:
        log("Displaying Results...")
        print(result.metrics.attrs.get("description", ""))
        print(format_tables(result.metrics, result.stats))

    figures: List[Any] = []
    if plot:
        log("Generating plots...")
        specs = plan_figures(result.record, result.plot_datas,
                             result.plan.total_window_count, result.config)
        figures = render_figures(specs, renderer)
        if renderer is None and figures:
            import matplotlib.pyplot as plt
            plt.show(block=False)
    return figures


# =============================================================================
# HTML spectrum report (Plotly)
# =============================================================================

def make_spectrum_figure(pd_freq: Dict[str, Any], *, title: str):
    """Create a Plotly Figure of one window's spectrum with LF/HF annotation."""
    import plotly.graph_objects as go

    fig = go.Figure()
    fig.add_trace(go.Scatter(x=pd_freq["freqs"], y=pd_freq["psd"], mode="lines", name="PSD"))

    for label, color in (("LF", "#1f77b4"), ("HF", "#d62728")):
        lo, hi = pd_freq["bands"][label]
        fig.add_vrect(
            x0=float(lo),
            x1=float(hi),
            fillcolor=color,
            opacity=0.18,
            line_width=0,
            layer="below",
            annotation_text=label,
            annotation_position="top left",
        )

    fig.add_annotation(
        x=0.99,
        y=0.99,
        xref="paper",
        yref="paper",
        xanchor="right",
        yanchor="top",
        text=(
            f"{pd_freq['method']}<br>"
            f"LF peak={pd_freq.get('lf_peak', float('nan')):.3f} Hz, "
            f"HF peak={pd_freq.get('hf_peak', float('nan')):.3f} Hz<br>"
            f"LF/HF={pd_freq.get('lf_hf_ratio', float('nan')):.2f}"
        ),
        showarrow=False,
        align="right",
        bordercolor="#ccc",
        borderwidth=1,
        bgcolor="rgba(255,255,255,0.85)",
    )
    fig.update_layout(
        title=title,
        xaxis_title="Frequency (Hz)",
        yaxis_title="PSD (ms²/Hz)",
        hovermode="x unified",
    )
    return fig


def write_spectrum_report(result: "HRVRunResult", output_html) -> pathlib.Path:
    """Write one HTML page with a spectrum card per processed window."""
    import plotly.io as pio

    out = pathlib.Path(output_html)
    out.parent.mkdir(parents=True, exist_ok=True)
    stem = pathlib.Path(result.record).stem
    total = result.plan.total_window_count

    blocks = []
    for i, window in enumerate(sorted(result.plot_datas)):
        title = f"{stem} window {window}/{total}"
        frag = pio.to_html(
            make_spectrum_figure(result.plot_datas[window].freq, title=title),
            full_html=False,
            include_plotlyjs="cdn" if i == 0 else False,
        )
        blocks.append("\n".join([
            '<div class="card">',
            f'  <div class="title">{title}</div>',
            '  <div class="plot">',
            frag,
            "  </div>",
            "</div>",
        ]))

    html = "\n".join([
        "<!doctype html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="utf-8" />',
        f"  <title>HRV spectra - {stem}</title>",
        "  <style>",
        "    body { font-family: -apple-system, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; margin: 16px; }",
        "    .grid { display: flex; flex-wrap: wrap; gap: 12px; }",
        "    .card { flex: 1 1 560px; border: 1px solid #ddd; border-radius: 8px; overflow: hidden; }",
        "    .title { padding: 8px 10px; font-weight: 600; border-bottom: 1px solid #eee; background: #fafafa; }",
        "    .plot { padding: 8px 10px; }",
        "  </style>",
        "</head>",
        "<body>",
        f"  <h1>HRV spectra - {stem}</h1>",
        '  <div class="grid">',
        *blocks,
        "  </div>",
        "</body>",
        "</html>",
    ])
    out.write_text(html, encoding="utf-8")
    return out
