from core.polyfill import build_socratic_reasoning_summary


def test_plan_steps_become_questions():
    summary = build_socratic_reasoning_summary(
        "Tidy my list",
        "Plan:\n1. List open todos\n2) Remove duplicates",
        "Implementation Guidance: Use todo_list first. Ask before removing. Keep it short. Be nice.",
    )

    assert summary.split("\n\n") == [
        "Q1: Why is step 1 necessary? A1: List open todos.\n"
        "Q2: Why is step 2 necessary? A2: Remove duplicates.",
        "Follow-up prompts:\n"
        "• Clarify 1: Use todo_list first.\n"
        "• Clarify 2: Ask before removing.\n"
        "• Clarify 3: Keep it short.",
        'Conclusion: This plan addresses "Tidy my list" by progressing through the numbered inquiries above.',
    ]


def test_without_guidance_there_are_no_follow_ups():
    summary = build_socratic_reasoning_summary("x", "do the thing", "")

    assert "Follow-up prompts" not in summary
    assert summary.startswith("Q1: Why is step 1 necessary? A1: do the thing.")


def test_empty_plan_gives_empty_summary():
    assert build_socratic_reasoning_summary("x", "Plan:   \n\n", "some guidance") == ""
