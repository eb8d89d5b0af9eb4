"""偏好标准化单元测试。"""

import pytest

from mindbridge.preferences import (
    map_support_type_to_database,
    map_support_type_to_ui,
    normalize_preference,
    normalize_preferences,
    preferences_overlap,
)


class TestNormalizePreferences:
    """测试 normalize_preferences 函数。"""

    @pytest.mark.parametrize("raw", ["anxious", "Anxiety Issues", "  social   ANXIETY ", "panic attacks"])
    def test_anxiety_synonyms(self, raw):
        """测试焦虑相关同义词归一为 anxiety。"""
        assert normalize_preference(raw) == "anxiety"

    def test_unknown_terms_pass_through(self):
        """测试未知词只做小写和去空格。"""
        assert normalize_preferences(["  Grief  "]) == ["grief"]

    def test_collapses_internal_whitespace(self):
        """测试内部多个空格合并。"""
        assert normalize_preferences(["Academic\t  Stress"]) == ["academic pressure"]

    def test_dedupes_and_keeps_order(self):
        """测试同义词合并后去重并保持顺序。"""
        result = normalize_preferences(["Stress", "anxious", "Anxiety", "stressed"])
        assert result == ["stress", "anxiety"]

    def test_drops_blanks_and_non_strings(self):
        """测试丢弃空白和非字符串。"""
        assert normalize_preferences(["", "   ", None, 42, "Loneliness"]) == ["loneliness"]

    @pytest.mark.parametrize("values", [None, []])
    def test_empty_input(self, values):
        """测试空输入返回空列表。"""
        assert normalize_preferences(values) == []


class TestPreferencesOverlap:
    """测试 preferences_overlap 函数。"""

    def test_substring_both_directions(self):
        """测试双向子串匹配。"""
        assert preferences_overlap("anxiety", "anxiety")
        assert preferences_overlap("stress", "work stress")
        assert preferences_overlap("work stress", "stress")

    def test_no_overlap(self):
        """测试不相关标签不匹配。"""
        assert not preferences_overlap("grief", "anxiety")


class TestSupportTypeMapping:
    """测试支持类型在界面文案与数据库值之间的映射。"""

    def test_ui_to_database(self):
        assert map_support_type_to_database("I need support") == "support-seeker"
        assert map_support_type_to_database("I want to provide support") == "support-giver"

    def test_database_to_ui(self):
        assert map_support_type_to_ui("support-seeker") == "I need support"
        assert map_support_type_to_ui("support-giver") == "I want to provide support"

    def test_unknown_values_unchanged(self):
        """测试未知值原样返回。"""
        assert map_support_type_to_database("other") == "other"
        assert map_support_type_to_ui("other") == "other"
