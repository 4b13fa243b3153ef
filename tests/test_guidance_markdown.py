import json

from app.pm2.modules.guidance.markdown import (
    clean_figure_markup,
    convert_ascii_tables,
    markdown_clean,
    remove_blockquotes,
    update_figure_paths,
)
from app.pm2.modules.guidance.service import process_guidance_dir, process_guidance_document
from scripts.clean_guidance import main as clean_guidance_main

GRID_TABLE = "\n".join(
    [
        "+-------+-------+",
        "| Role  | Tasks |",
        "+=======+=======+",
        "| **PO** | - own |",
        "| lead  | - fund |",
        "+-------+-------+",
        "| PM    | > run |",
        "+-------+-------+",
    ]
)


def test_grid_table_becomes_pipe_table():
    out = convert_ascii_tables("Intro\n" + GRID_TABLE + "\nAfter")
    assert out == (
        "Intro\n"
        "| Role | Tasks |\n"
        "| --- | --- |\n"
        "| PO lead | - own<br>- fund |\n"
        "| PM | run |\n"
        "\nAfter"
    )


def test_text_without_tables_is_untouched():
    assert convert_ascii_tables("a | b\nplain") == "a | b\nplain"


def test_underline_markers_removed():
    assert markdown_clean("[Key term]{.underline} and [x]{underline}") == "[Key term] and [x]"


def test_bracketed_url_gets_target():
    assert markdown_clean("See [https://example.com/page.]") == (
        "See [https://example.com/page](https://example.com/page)"
    )


def test_url_link_text_trimmed():
    assert markdown_clean("[https://a.eu/x.](https://a.eu/x)") == "[https://a.eu/x](https://a.eu/x)"


def test_bare_url_autolinked():
    assert markdown_clean("Visit https://ec.europa.eu/pm2 today") == (
        "Visit [https://ec.europa.eu/pm2](https://ec.europa.eu/pm2) today"
    )


def test_existing_links_untouched():
    text = "Read [the guide](https://ec.europa.eu/some_path_with_underscores)"
    assert markdown_clean(text) == text


def test_figure_markup_cleaned():
    text = '![](media/image1.png){width="5in" height="3in"}\n\n**Fig. 2_3**Project lifecycle'
    assert clean_figure_markup(text) == "![](media/image1.png)\n\n**Fig 2.3** Project lifecycle"


def test_remove_blockquotes():
    assert remove_blockquotes("> Quote line\n> more") == "Quote line\nmore"
    assert remove_blockquotes("no quotes") == "no quotes"


def test_figure_paths_repointed():
    text = "![](media/image3.png)\n\n**Fig 1.4** Caption"
    assert update_figure_paths(text) == "![](/pm2/figures/fig-1-4.png)\n\n**Fig 1.4** Caption"

    already = "![](/pm2/figures/fig-1-4.png)\n**Fig 1.4**"
    assert update_figure_paths(already) == already

    assert update_figure_paths("![](media/x.png)\nNo caption") == "![](media/x.png)\nNo caption"


def test_figure_path_only_for_nearest_image():
    text = "![](a.png)\n![](b.png)\n**Fig 2.1** Two"
    assert update_figure_paths(text) == "![](a.png)\n![](/pm2/figures/fig-2-1.png)\n**Fig 2.1** Two"


def test_process_document_sections_and_flat():
    doc = {"sections": [{"title": "A", "markdown": "> quoted"}, {"title": "B"}]}
    assert process_guidance_document(doc, [remove_blockquotes]) is True
    assert doc["sections"][0]["markdown"] == "quoted"

    flat = {"markdown": "plain"}
    assert process_guidance_document(flat, [remove_blockquotes]) is False


def test_process_dir_dry_run_and_bad_files(tmp_path):
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"markdown": "> hi"}), encoding="utf-8")
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "list.json").write_text("[]", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("> skip", encoding="utf-8")

    result = process_guidance_dir(tmp_path, [remove_blockquotes], dry_run=True)
    assert result.updated == ["good.json"]
    assert sorted(name for name, _ in result.failed) == ["bad.json", "list.json"]
    assert json.loads(good.read_text(encoding="utf-8"))["markdown"] == "> hi"

    result = process_guidance_dir(tmp_path, [remove_blockquotes])
    assert json.loads(good.read_text(encoding="utf-8"))["markdown"] == "hi"

    result = process_guidance_dir(tmp_path, [remove_blockquotes])
    assert result.updated == []
    assert result.unchanged == ["good.json"]


def test_clean_guidance_cli(tmp_path):
    doc = tmp_path / "page.json"
    doc.write_text(json.dumps({"sections": [{"markdown": "**Fig 1_2**Title"}]}), encoding="utf-8")

    assert clean_guidance_main([str(tmp_path), "--steps", "figures", "--dry-run"]) == 0
    assert "Fig 1_2" in doc.read_text(encoding="utf-8")

    assert clean_guidance_main([str(tmp_path), "--steps", "figures"]) == 0
    assert json.loads(doc.read_text(encoding="utf-8"))["sections"][0]["markdown"] == "**Fig 1.2** Title"

    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    assert clean_guidance_main([str(tmp_path), "--steps", "figures"]) == 1
