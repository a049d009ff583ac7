import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from dgeplots.volcano import (
    DOWN_GENES,
    LABEL_GENES,
    UP_GENES,
    build_volcano_figure,
    save_volcano,
    select_labels,
)


@pytest.fixture
def hundred_genes() -> pd.DataFrame:
    """100 genes: the 15 cited genes plus 85 others, one of them with zero fold change."""
    rng = np.random.default_rng(7)
    others = [f"GENE{i}" for i in range(85)]
    genes = UP_GENES + DOWN_GENES + others
    lfc = np.concatenate([rng.uniform(1, 4, 10), rng.uniform(-4, -1, 5), rng.normal(0, 1.5, 85)])
    lfc[20] = 0.0
    return pd.DataFrame(
        {
            "Gene": genes,
            "log2FoldChange": lfc,
            "pvalue": rng.uniform(1e-10, 1, 100),
            "padj": rng.uniform(1e-8, 1, 100),
        }
    )


def test_label_set_has_fifteen_genes():
    assert len(UP_GENES) == 10
    assert len(DOWN_GENES) == 5
    assert len(set(LABEL_GENES)) == 15


def test_select_labels(hundred_genes):
    labels = select_labels(hundred_genes)
    assert set(labels["Gene"]) == set(LABEL_GENES)


def test_select_labels_only_present_genes(dge_table):
    labels = select_labels(dge_table)
    assert set(labels["Gene"]) == {"IL6", "CXCL10", "RPL41"}


def test_rendered_labels_match_allow_list(hundred_genes):
    fig = build_volcano_figure(hundred_genes)
    ax = fig.axes[0]
    texts = {t.get_text() for t in ax.texts}
    assert texts == set(LABEL_GENES)
    plt.close(fig)


def test_zero_fold_change_does_not_break_palette(dge_table):
    fig = build_volcano_figure(dge_table, subtitle="Analyst")
    ax = fig.axes[0]
    # down, up, unchanged categories plus the ring overlay
    assert len(ax.collections) == 4
    plt.close(fig)


def test_reference_lines(dge_table):
    fig = build_volcano_figure(dge_table)
    ax = fig.axes[0]
    xs = sorted(line.get_xdata()[0] for line in ax.lines if line.get_xdata()[0] == line.get_xdata()[1])
    ys = [line.get_ydata()[0] for line in ax.lines if line.get_ydata()[0] == line.get_ydata()[1]]
    assert xs == [-1, 1]
    assert ys == [0]
    assert all(line.get_linestyle() == "--" for line in ax.lines)
    plt.close(fig)


def test_save_volcano_pdf(tmp_path, dge_table):
    out = save_volcano(build_volcano_figure(dge_table), tmp_path / "plots" / "volcano.pdf")
    assert out.read_bytes().startswith(b"%PDF")


def test_labels_avoid_points_and_each_other():
    dge = pd.DataFrame(
        {
            "Gene": ["IL6", "CXCL10", "RPL41", "GENE1", "GENE2"],
            "log2FoldChange": [2.5, 1.5, -2.0, 0.4, -0.6],
            "pvalue": [1e-6, 1e-4, 1e-5, 0.3, 0.05],
        }
    )
    fig = build_volcano_figure(dge)
    ax = fig.axes[0]
    fig.canvas.draw()
    renderer = fig.canvas.get_renderer()

    points = np.concatenate(
        [c.get_offset_transform().transform(np.asarray(c.get_offsets(), dtype=float)) for c in ax.collections]
    )
    extents = [t.get_window_extent(renderer) for t in ax.texts]
    assert len(extents) == 3
    for i, extent in enumerate(extents):
        assert extent.count_contains(points) == 0
        assert not any(extent.overlaps(other) for other in extents[i + 1:])
    plt.close(fig)


def test_crowded_labels_are_all_placed():
    dge = pd.DataFrame(
        {"Gene": LABEL_GENES, "log2FoldChange": [1.0] * 15, "pvalue": [1e-3] * 15}
    )
    fig = build_volcano_figure(dge)
    assert sorted(t.get_text() for t in fig.axes[0].texts) == sorted(LABEL_GENES)
    plt.close(fig)
