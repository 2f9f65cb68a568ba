"""Figures for the rendered reports. Every function returns a Figure; the caller closes it."""

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

# Palette (color-vision friendly): blue = no default, coral = default
COLOR_NO = "#3B5BA5"
COLOR_YES = "#E45756"
HEATMAP_CMAP = "PuOr"
PALETTE = {"no": COLOR_NO, "yes": COLOR_YES, "unknown": "#9CA3AF"}

sns.set_theme(
    style="whitegrid",
    rc={
        "axes.titlesize": 13,
        "axes.labelsize": 11,
        "legend.frameon": False,
        "figure.dpi": 110,
        "grid.color": "#EEF2F5",
    },
)


def new_fig(figsize=(7, 4)):
    return plt.subplots(figsize=figsize, constrained_layout=True)


def label_distribution(clients: pd.DataFrame):
    """Bar chart of defaulted vs not defaulted clients."""
    fig, ax = new_fig((5, 3.5))
    counts = clients["defaulted"].value_counts().reindex(["no", "yes"]).fillna(0)
    ax.bar(counts.index, counts.values, color=[COLOR_NO, COLOR_YES])
    for x, v in zip(counts.index, counts.values):
        ax.annotate(f"{int(v):,}", (x, v), ha="center", va="bottom")
    ax.set(title="Default next month", xlabel="Defaulted", ylabel="Clients")
    return fig


def numeric_histograms(clients: pd.DataFrame, columns):
    """Histogram per numeric column, split by default status."""
    columns = [c for c in columns if c in clients.columns]
    n_cols = 2
    n_rows = max(1, int(np.ceil(len(columns) / n_cols)))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(10, 3.2 * n_rows), constrained_layout=True)
    axes = np.atleast_1d(axes).ravel()
    data = clients[columns + ["defaulted"]].copy()
    data[columns] = data[columns].astype(float)
    for ax, col_name in zip(axes, columns):
        sns.histplot(
            data=data, x=col_name, hue="defaulted", palette=PALETTE,
            bins=40, element="step", stat="density", common_norm=False, ax=ax,
        )
        ax.set_title(col_name)
    for ax in axes[len(columns):]:
        ax.set_visible(False)
    return fig


def correlation_heatmap(corr: pd.DataFrame, dropped=()):
    """Correlation matrix heatmap; dropped features are marked with '*'."""
    size = max(6, 0.35 * len(corr))
    fig, ax = new_fig((size, size * 0.85))
    labels = [f"{c} *" if c in set(dropped) else c for c in corr.columns]
    sns.heatmap(
        corr, cmap=HEATMAP_CMAP, vmin=-1, vmax=1, center=0, square=True,
        xticklabels=labels, yticklabels=labels, cbar_kws={"shrink": 0.7}, ax=ax,
    )
    ax.set_title("Pearson correlation of numeric features (* = dropped)")
    return fig


def experience_by_center(agents: pd.DataFrame):
    """Agent experience in weeks per call center."""
    fig, ax = new_fig((7, 4))
    data = agents.dropna(subset=["experience_weeks"]).copy()
    data["experience_weeks"] = data["experience_weeks"].astype(float)
    data["call_center_id"] = data["call_center_id"].astype(str)
    sns.boxplot(data=data, x="call_center_id", y="experience_weeks", color="#9CA3AF", ax=ax)
    sns.stripplot(data=data, x="call_center_id", y="experience_weeks", color=COLOR_NO, size=4, ax=ax)
    ax.set(title="Agent experience by call center", xlabel="Call center", ylabel="Weeks since hire")
    return fig


def importance_bars(importance: pd.DataFrame, title: str, top: int = 15):
    """Horizontal bars of the most important features (0-100)."""
    head = importance.head(top).iloc[::-1]
    fig, ax = new_fig((7, 0.32 * len(head) + 1.2))
    ax.barh(head["feature"], head["importance"], color=COLOR_NO)
    ax.set(title=title, xlabel="Importance (0-100)", xlim=(0, 105))
    return fig


def model_comparison(table: pd.DataFrame):
    """Dot plot of accuracy and kappa per model."""
    long = table.melt(id_vars="Model", value_vars=["Accuracy", "Kappa"], var_name="Metric", value_name="Value")
    fig, axes = plt.subplots(1, 2, figsize=(10, 0.5 * len(table) + 1.6), constrained_layout=True, sharey=True)
    for ax, metric, color in zip(axes, ["Accuracy", "Kappa"], [COLOR_NO, COLOR_YES]):
        part = long[long["Metric"] == metric]
        ax.scatter(part["Value"], part["Model"], color=color, s=60, zorder=3)
        ax.set(title=metric, xlabel=metric)
    axes[0].set_ylabel("")
    return fig
