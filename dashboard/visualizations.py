from __future__ import annotations

from dashboard.theme import get_active_theme


def _active_theme():
    return get_active_theme()[1]


def apply_common_plot_style(fig, title="", show_xgrid=False, show_ygrid=True):
    theme = _active_theme()
    fig.update_layout(
        title=title,
        title_font=dict(color=theme["text_main"], size=16, family="Crimson Text"),
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font=dict(color=theme["text_main"], family="IBM Plex Sans"),
        margin=dict(l=30, r=10, t=40 if title else 10, b=30),
        xaxis=dict(showgrid=show_xgrid, gridcolor=theme["plot_grid"], zeroline=False),
        yaxis=dict(showgrid=show_ygrid, gridcolor=theme["plot_grid"], zeroline=False),
        showlegend=False,
    )
    return fig


def trend_sparkline(trend, title="", color=None):
    """Solid line up to the focal point, dashed from it onwards."""
    import plotly.graph_objects as go

    theme = _active_theme()
    color = color or theme["accent"]
    labels = [point["label"] for point in trend["points"]]
    focal = trend["focalIndex"]

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(x=labels, y=trend["history"], mode="lines", line=dict(color=color, width=2), connectgaps=False)
    )
    fig.add_trace(
        go.Scatter(
            x=labels,
            y=trend["projection"],
            mode="lines",
            line=dict(color=color, width=2, dash="dash"),
            opacity=0.7,
            connectgaps=False,
        )
    )
    fig.add_trace(
        go.Scatter(
            x=[labels[focal]],
            y=[trend["points"][focal]["value"]],
            mode="markers",
            marker=dict(color=color, size=9, line=dict(color=theme["text_main"], width=1)),
            hovertemplate="%{x}: %{y}<extra></extra>",
        )
    )
    apply_common_plot_style(fig, title)
    fig.update_layout(height=220)
    return fig


def allocation_donut(slices, currency, title=""):
    import plotly.graph_objects as go

    fig = go.Figure(
        data=go.Pie(
            labels=[item["category"] for item in slices],
            values=[item["worth"] for item in slices],
            text=[f"{item['percentage']}%" for item in slices],
            textinfo="text",
            hole=0.6,
            sort=False,
            hovertemplate=f"%{{label}}: %{{value:,.2f}} {currency}<extra></extra>",
        )
    )
    apply_common_plot_style(fig, title)
    fig.update_layout(height=320, showlegend=True)
    return fig


def habit_heatmap(heatmap, color_code, title=""):
    import numpy as np
    import plotly.graph_objects as go

    theme = _active_theme()
    z = np.array([[np.nan if cell is None else cell for cell in row] for row in heatmap["z"]], dtype=float)
    fig = go.Figure(
        data=go.Heatmap(
            z=z,
            text=heatmap["hover_text"],
            hoverinfo="text",
            colorscale=[(0.0, theme["heat_open"]), (0.5, theme["heat_open"]), (0.5, color_code), (1.0, color_code)],
            showscale=False,
            zmin=0,
            zmax=1,
            xgap=2,
            ygap=2,
        )
    )
    apply_common_plot_style(fig, title, show_ygrid=False)
    fig.update_layout(height=180)
    fig.update_xaxes(
        tickmode="array",
        tickvals=[idx for idx, label in enumerate(heatmap["x_labels"]) if label],
        ticktext=[label for label in heatmap["x_labels"] if label],
    )
    fig.update_yaxes(
        tickmode="array",
        tickvals=list(range(len(heatmap["y_labels"]))),
        ticktext=heatmap["y_labels"],
        autorange="reversed",
    )
    return fig
