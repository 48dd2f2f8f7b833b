import textwrap

from progress_tracker.__main__ import main

SNAPSHOT = textwrap.dedent(
    """
    project:
      name: Riverside School
    plan:
      - {id: G1, kind: group, description: Structure}
      - {id: A, code: "1.1", description: Columns, quantity: 20, unit: m3, unit_price: 150}
      - {id: B, code: "1.2", description: Beams, quantity: 30, unit: m3, unit_price: 100}
      - {id: G2, kind: group, description: Finishes}
      - {id: D, code: "2.1", description: Paint, quantity: 500, unit: m2}
    periods:
      - {id: P1, sequence: 1, label: Month 1, start: 2024-01-01, end: 2024-01-31}
      - {id: P2, sequence: 2, label: Month 2, start: 2024-02-01, end: 2024-02-29}
    estimates:
      - {period: P1, item: A, fraction: 0.5}
      - {period: P2, item: A, fraction: 0.5}
      - {period: P2, item: B, fraction: 1.0}
    reports:
      - {id: r1, item: A, percent: 30, date: 2024-01-20}
      - {id: r2, item: B, percent: 40, date: 2024-02-10}
    """
)


def _write(tmp_path, text):
    path = tmp_path / "project.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_cli_renders_chart_grid_and_summary(tmp_path, capsys):
    out_file = tmp_path / "out" / "chart.svg"

    code = main([_write(tmp_path, SNAPSHOT), "--out", str(out_file), "--no-view", "--grid", "--summary"])

    assert code == 0
    assert out_file.exists()
    printed = capsys.readouterr().out
    assert "Project progress:" in printed
    assert "Structure" in printed
    assert "2024-01\t2024-02" in printed


def test_cli_quantity_view_on_one_group(tmp_path):
    out_file = tmp_path / "qty.svg"

    code = main(
        [_write(tmp_path, SNAPSHOT), "--out", str(out_file), "--no-view", "--group", "G1", "--mode", "qty", "--zoom", "to-date"]
    )

    assert code == 0
    assert out_file.exists()


def test_cli_nothing_to_chart_for_item_without_data(tmp_path, capsys):
    out_file = tmp_path / "empty.svg"

    code = main([_write(tmp_path, SNAPSHOT), "--out", str(out_file), "--no-view", "--item", "D"])

    assert code == 0
    assert not out_file.exists()
    assert "Nothing to chart" in capsys.readouterr().err


def test_cli_unknown_item_selection_fails(tmp_path):
    assert main([_write(tmp_path, SNAPSHOT), "--no-view", "--item", "ZZ"]) == 2


def test_cli_missing_file_returns_one(tmp_path):
    assert main([str(tmp_path / "absent.yaml"), "--no-view"]) == 1


def test_cli_orphan_item_returns_two(tmp_path):
    broken = textwrap.dedent(
        """
        project:
          name: Broken
        plan:
          - {id: A, description: Orphan}
        """
    )

    assert main([_write(tmp_path, broken), "--no-view"]) == 2


WEIGHTED = textwrap.dedent(
    """
    project:
      name: Weighted
    plan:
      - {id: G1, kind: group, description: Structure}
      - {id: A, code: "1.1", description: Columns, quantity: 20, unit: m3}
      - {id: B, code: "1.2", description: Beams, quantity: 30, unit: m3, weight: 9}
      - {id: G2, kind: group, description: Finishes}
      - {id: D, code: "2.1", description: Paint, quantity: 500, unit: m2}
    periods:
      - {id: P1, sequence: 1, start: 2024-01-01, end: 2024-01-31}
      - {id: P2, sequence: 2, start: 2024-02-01, end: 2024-02-29}
    estimates:
      - {period: P1, item: A, fraction: 0.5}
      - {period: P2, item: A, fraction: 0.5}
      - {period: P2, item: B, fraction: 1.0}
    reports:
      - {id: r1, item: A, percent: 30, date: 2024-01-20}
    """
)


def test_cli_grid_headings_weight_every_item_of_the_group(tmp_path, capsys):
    code = main(
        [_write(tmp_path, WEIGHTED), "--out", str(tmp_path / "chart.svg"), "--no-view", "--grid", "--item", "A"]
    )

    assert code == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "row\t2024-01\t2024-02",
        "Structure\t5.0/3.0\t95.0/0.0",
        "  1.1 Columns\t50.0/30.0\t50.0/0.0",
    ]
