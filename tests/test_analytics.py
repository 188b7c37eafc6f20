from datetime import datetime, timezone

from workflow.core.analytics import (
    analyze_question,
    filter_by_date_range,
    generate_analytics,
    generate_fallback_insights,
    get_common_words,
    transform_responses,
)

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def responses(*answer_sets, timestamp="2024-06-29T10:00:00Z"):
    return [{"id": f"r{i}", "timestamp": timestamp, "answers": answers} for i, answers in enumerate(answer_sets)]


def test_common_words_skips_short_words_and_punctuation():
    words = get_common_words(["The venue, the venue!", "Great venue and food"])
    assert words[0] == {"word": "venue", "count": 3}
    assert {"word": "the", "count": 2} in words
    assert all(len(entry["word"]) > 2 for entry in words)


def test_yesno_without_options_counts_yes_and_no():
    result = analyze_question(
        {"id": "q1", "type": "yesno", "label": "Enjoyed?"},
        responses({"q1": "Yes"}, {"q1": "Yes"}, {"q1": "No"}, {}),
    )
    assert result["data"]["options"] == ["Yes", "No"]
    assert result["data"]["counts"] == [2, 1]
    assert result["totalResponses"] == 3
    assert result["responseRate"] == 75


def test_checkbox_counts_lists_and_joined_strings():
    result = analyze_question(
        {"id": "q2", "type": "checkbox", "options": ["A", "B", "C"]},
        responses({"q2": ["A", "B"]}, {"q2": "B, C"}),
    )
    assert result["data"]["counts"] == [1, 2, 1]
    assert result["data"]["percentages"] == [50, 100, 50]


def test_scale_average_and_distribution():
    result = analyze_question(
        {"id": "q4", "type": "scale", "scaleRange": 5},
        responses({"q4": "5"}, {"q4": 3}, {"q4": "n/a"}),
    )
    assert result["data"]["average"] == 4
    assert result["data"]["distribution"] == [0, 0, 1, 0, 1]


def test_text_stats():
    result = analyze_question({"id": "q3", "type": "text"}, responses({"q3": "short"}, {"q3": "a bit longer"}))
    assert result["data"]["totalTextResponses"] == 2
    assert result["data"]["wordCounts"] == [1, 3]


def test_no_responses_gives_zero_rate():
    analytics = generate_analytics([{"id": "q1", "type": "text"}], [])
    assert analytics[0]["responseRate"] == 0
    assert analytics[0]["data"]["averageLength"] == 0


def test_filter_by_date_range():
    data = responses({"q1": "Yes"}) + responses({"q1": "No"}, timestamp="2024-05-01T00:00:00Z")
    data.append({"id": "bad", "timestamp": "not a date", "answers": {}})

    assert len(filter_by_date_range(data, "7d", now=NOW)) == 1
    assert len(filter_by_date_range(data, "90d", now=NOW)) == 2
    assert len(filter_by_date_range(data, "all", now=NOW)) == 3


def test_transform_responses_fills_ids_and_timestamps():
    transformed = transform_responses(
        [{"timestamp": None, "ip": "1.2.3.4", "userAgent": "ua", "answers": {"q1": "Yes"}}],
        now=NOW,
    )
    assert transformed == [{
        "id": "response_0",
        "timestamp": "2024-06-30T12:00:00Z",
        "answers": {"q1": "Yes"},
        "metadata": {"ip": "1.2.3.4", "userAgent": "ua"},
    }]


def test_fallback_insights(sample_questions):
    analytics = generate_analytics(
        sample_questions,
        responses({"q1": "Yes", "q2": ["A"]}, {"q1": "No", "q2": ["A"], "q3": "Too long"}),
    )
    insights = generate_fallback_insights(analytics)
    titles = [insight["title"] for insight in insights]

    assert titles == ["Overall Response Rate", "Text Response Patterns", "Most Popular Choices"]
    assert insights[0]["confidence"] == 0.9
    assert "Users are providing brief responses." in insights[1]["description"]
    assert "Did you enjoy the event?: Yes" in insights[2]["description"]


def test_fallback_insights_empty():
    assert generate_fallback_insights([]) == []
