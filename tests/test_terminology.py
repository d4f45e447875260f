"""
Tests for term protection and glossaries.
"""
import json

from skill_translation.translation.terminology import (
    Glossary,
    TermProtector,
    create_builtin_glossary,
    load_glossary,
)


def test_protect_and_restore_round_trip():
    protector = TermProtector(["Unity", "VR"])

    protected = protector.protect("Unity plugin for VR")

    assert protected.text == "__TERM_001__ plugin for __TERM_002__"
    assert protected.replacements == {"__TERM_001__": "Unity", "__TERM_002__": "VR"}
    assert protector.restore(protected.text, protected) == "Unity plugin for VR"


def test_all_occurrences_share_one_placeholder():
    protector = TermProtector(["API"])

    protected = protector.protect("Call the api, then the API again")

    assert protected.text == "Call the __TERM_001__, then the __TERM_001__ again"
    # The configured spelling is restored
    assert protector.restore(protected.text, protected) == "Call the API, then the API again"


def test_word_boundaries_for_alphanumeric_terms():
    protector = TermProtector(["Git"])

    protected = protector.protect("Use GitHub with Git")

    assert protected.text == "Use GitHub with __TERM_001__"


def test_non_alphanumeric_terms_match_as_substrings():
    protector = TermProtector(["Node.js"])

    protected = protector.protect("Runs on node.js servers")

    assert protected.text == "Runs on __TERM_001__ servers"


def test_longest_candidate_wins_and_phrases_come_first():
    protector = TermProtector(["Claude", "Claude Code"], {"skill": "技能"})

    protected = protector.protect("A Claude Code skill")

    assert protected.text == "A __TERM_002__ __MAP_001__"
    assert protector.restore("一个 __TERM_002__ __MAP_001__", protected) == "一个 Claude Code 技能"


def test_counter_only_advances_on_match():
    protector = TermProtector(["Docker", "MCP"], {"prompt": "提示词"})

    protected = protector.protect("An MCP server")

    assert protected.replacements == {"__TERM_001__": "MCP"}


def test_blank_terms_dropped_and_duplicates_merged():
    protector = TermProtector(["", "  ", "API", "api"])

    assert protector.protected_terms == ["API"]


def test_blank_input_and_no_matches():
    protector = TermProtector(["Unity"])

    assert protector.protect("").replacements == {}
    assert protector.protect("   ").text == "   "
    protected = protector.protect("nothing here")
    assert protected.text == "nothing here"
    assert protector.restore("rien", protected) == "rien"


def test_mangled_placeholders_are_reported_and_left_alone():
    protector = TermProtector(["Unity", "VR"])
    protected = protector.protect("Unity plugin for VR")
    output = "__TERM_001__ 插件 __ TERM_002 __"

    assert TermProtector.missing_placeholders(output, protected) == ["__TERM_002__"]
    assert protector.restore(output, protected) == "Unity 插件 __ TERM_002 __"


def test_builtin_glossary_mapped_phrases_only_for_chinese():
    zh = create_builtin_glossary("zh-CN")
    ja = create_builtin_glossary("ja")

    assert zh.mapped_phrases["skill"] == "技能"
    assert ja.mapped_phrases == {}
    assert "Unity" in ja.protected_terms


def test_glossary_add_replaces_same_source_term():
    glossary = Glossary(name="custom")
    glossary.add_protected("prompt")
    glossary.add_mapping("Prompt", "提示")

    assert len(glossary) == 1
    assert glossary.mapped_phrases == {"Prompt": "提示"}
    assert glossary.remove_entry("PROMPT")
    assert not glossary.remove_entry("prompt")


def test_load_glossary_layers_user_file(tmp_path):
    path = tmp_path / "glossary.json"
    path.write_text(json.dumps({
        "name": "mine",
        "protected_terms": ["Blender"],
        "mapped_phrases": {"skill": "能力"},
    }, ensure_ascii=False), encoding="utf-8")

    glossary = load_glossary(path, "zh-CN")
    protector = glossary.to_protector()

    assert glossary.mapped_phrases["skill"] == "能力"
    assert "Blender" in protector.protected_terms
    assert "Unity" in protector.protected_terms


def test_glossary_save_and_load(tmp_path):
    path = tmp_path / "nested" / "glossary.json"
    glossary = Glossary(name="mine", target_lang="zh-CN")
    glossary.add_protected("Blender", category="tool")
    glossary.add_mapping("pull request", "拉取请求")

    assert glossary.save(path)
    loaded = Glossary.load(path)

    assert loaded.name == "mine"
    assert loaded.protected_terms == ["Blender"]
    assert loaded.mapped_phrases == {"pull request": "拉取请求"}


def test_unreadable_glossary_falls_back_to_builtin(tmp_path):
    path = tmp_path / "glossary.json"
    path.write_text("not json", encoding="utf-8")

    glossary = load_glossary(path, "zh-CN")

    assert len(glossary) == len(create_builtin_glossary("zh-CN"))
