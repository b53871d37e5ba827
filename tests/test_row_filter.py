"""
Unit tests for the SQL row filter.

Covers the project allow-list, the approval status exclusion and
user-supplied filter conditions.
"""

import pandas as pd
import pytest

from kobo_prep.exceptions import ConfigurationError
from kobo_prep.preprocessing.row_filter import (
    FilterConfig,
    RowFilter,
    create_project_filter,
    create_status_filter,
    filter_approved,
    filter_by_project,
    is_all_projects,
)


class TestProjectFilter:
    """Test filtering by project name."""

    def test_keeps_matching_project_case_insensitive(self, survey_df):
        """Test that project names match regardless of case."""
        result = filter_by_project(survey_df, "FUNACTION")

        assert result["site"].tolist() == ["S1", "S2", "S4", "S6"]

    def test_multiple_projects(self, survey_df):
        """Test an allow-list with several projects."""
        result = filter_by_project(survey_df, ["funaction", "Pilot"])

        assert result["site"].tolist() == ["S1", "S2", "S3", "S4", "S6"]

    def test_all_returns_table_unchanged(self, survey_df):
        """Test that the wildcard 'all' bypasses project filtering."""
        assert filter_by_project(survey_df, "all") is survey_df
        assert filter_by_project(survey_df, "ALL") is survey_df
        assert filter_by_project(survey_df, ["funaction", "All"]) is survey_df

    def test_surrounding_whitespace_ignored(self):
        """Test that padded project values still match."""
        df = pd.DataFrame({"Project": [" funaction ", "other"]})

        result = filter_by_project(df, "funaction")

        assert result["Project"].tolist() == [" funaction "]

    def test_index_kept_like_all(self):
        """Test that filtered and unfiltered results keep the same index."""
        df = pd.DataFrame({"Project": ["a", "b"]}, index=[10, 20])

        assert filter_by_project(df, "b").index.tolist() == [20]
        assert filter_by_project(df, "all").index.tolist() == [10, 20]

    def test_empty_names_rejected(self, survey_df):
        """Test that an empty selection is a configuration error."""
        with pytest.raises(ConfigurationError):
            filter_by_project(survey_df, [])
        with pytest.raises(ConfigurationError):
            filter_by_project(survey_df, "  ")

    def test_no_match_keeps_columns(self, survey_df):
        """Test that filtering everything out keeps the header."""
        result = filter_by_project(survey_df, "unknown")

        assert len(result) == 0
        assert list(result.columns) == list(survey_df.columns)

    def test_missing_project_column_is_noop(self):
        """Test tolerance to exports without a Project column."""
        df = pd.DataFrame({"site": ["S1", "S2"]})

        result = filter_by_project(df, "funaction")

        assert result["site"].tolist() == ["S1", "S2"]

    def test_is_all_projects(self):
        """Test wildcard detection."""
        assert is_all_projects("all")
        assert is_all_projects(["All"])
        assert not is_all_projects("funaction")
        assert not is_all_projects(None)


class TestApprovalFilter:
    """Test exclusion of not approved / on hold records."""

    def test_removes_banned_statuses(self, survey_df):
        """Test that exactly the banned statuses are removed, order kept."""
        result = filter_approved(survey_df)

        assert result["site"].tolist() == ["S1", "S3", "S5"]
        assert result["X_validation_status"].tolist() == ["Approved", "Approved", "approved"]

    def test_substring_match(self):
        """Test that any status containing a banned phrase is excluded."""
        df = pd.DataFrame({
            "X_validation_status": ["NOT APPROVED", "on hold - check GPS", "", "Approved"],
            "n": ["1", "2", "3", "4"],
        })

        result = filter_approved(df)

        assert result["n"].tolist() == ["3", "4"]

    def test_custom_banned_phrases(self, survey_df):
        """Test a different set of banned phrases."""
        result = filter_approved(survey_df, banned=["approved"])

        assert result["site"].tolist() == ["S4"]

    def test_missing_status_column_is_noop(self):
        """Test tolerance to exports without a status column."""
        df = pd.DataFrame({"Project": ["funaction"]})

        result = filter_approved(df)

        assert result["Project"].tolist() == ["funaction"]

    def test_null_status_is_kept(self):
        """Test that missing status values are not treated as banned."""
        df = pd.DataFrame({"X_validation_status": [None, "On Hold"], "n": ["1", "2"]})

        result = filter_approved(df)

        assert result["n"].tolist() == ["1"]


class TestRowFilter:
    """Test the RowFilter engine directly."""

    @pytest.fixture
    def row_filter(self):
        rf = RowFilter()
        yield rf
        rf.close()

    def test_apply_all_reports_counts(self, row_filter, survey_df):
        """Test FilterResult bookkeeping over several filters."""
        result = row_filter.apply_all(
            survey_df,
            [create_project_filter("funaction"), create_status_filter()],
        )

        assert result.filters_applied == 2
        assert result.rows_before == 6
        assert result.rows_after == 1
        assert result.rows_removed == 5
        assert [d["name"] for d in result.filter_details] == ["project", "approval_status"]
        assert result.errors == []

    def test_config_from_dict(self, row_filter, survey_df):
        """Test filters given as dictionaries (from YAML)."""
        result = row_filter.apply_all(
            survey_df,
            [{"name": "only_s3", "condition": "WHERE site = 'S3'", "columns": ["site"]}],
        )

        assert result.df["site"].tolist() == ["S3"]

    def test_disabled_filter_skipped(self, row_filter, survey_df):
        """Test that disabled filters are not applied."""
        config = FilterConfig(name="none", condition="FALSE", enabled=False)

        result = row_filter.apply_all(survey_df, [config])

        assert result.filters_applied == 0
        assert len(result.df) == 6

    def test_invalid_condition_recorded(self, row_filter, survey_df):
        """Test that a broken SQL condition is reported, not raised."""
        config = FilterConfig(name="broken", condition="no_such_column = 1")

        result = row_filter.apply_all(survey_df, [config])

        assert result.filters_applied == 0
        assert len(result.errors) == 1
        assert "broken" in result.errors[0]
        assert len(result.df) == 6

    def test_columns_differing_only_by_case_kept(self, row_filter):
        """Test that filtering never renames or reorders columns."""
        df = pd.DataFrame({
            "Project": ["funaction", "other"],
            "Notes": ["a", "b"],
            "notes": ["c", "d"],
        })

        result = row_filter.apply_all(df, [create_project_filter("funaction")])

        assert list(result.df.columns) == ["Project", "Notes", "notes"]
        assert result.df.iloc[0].tolist() == ["funaction", "a", "c"]

    def test_index_and_dtypes_preserved(self, row_filter):
        """Test that kept rows are taken from the input as they are."""
        df = pd.DataFrame(
            {"Project": ["a", "b", "b"], "n": [1, 2, 3]},
            index=[10, 20, 30],
        )

        result = row_filter.apply_all(df, [create_project_filter("b")])

        assert result.df.index.tolist() == [20, 30]
        assert result.df["n"].tolist() == [2, 3]
        assert result.df.dtypes.equals(df.dtypes)

    def test_quotes_in_project_names(self, row_filter):
        """Test that quotes in values do not break the SQL condition."""
        df = pd.DataFrame({"Project": ["o'brien", "other"]})

        result = row_filter.apply_all(df, [create_project_filter("O'Brien")])

        assert result.df["Project"].tolist() == ["o'brien"]
