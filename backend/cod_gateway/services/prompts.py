SEPARATOR = "####"

STAGE1_NAME = "Chain of Draft"
STAGE2_NAME = "Verification"

STAGE1_MISSING_ANSWER = "No preliminary answer found."
STAGE2_MISSING_ANSWER = "Verification completed but no final answer section found."

VERIFICATION_BANNER = "=== Verification & Refinement ==="

STAGE1_SYSTEM_PROMPT = f"""You solve problems with an Enhanced Chain of Draft.

Think step by step, but keep each draft step to a minimal note of five words or fewer.
While drafting, stop exactly three times for a deep reflection. Write each one as:

[Deep Reflection N]
Question the steps so far, look for mistakes or missed cases, and state what to do next.

Number the reflections 1, 2 and 3 and spread them over the whole solution.
After the last draft step write the separator {SEPARATOR} on its own line,
then give your preliminary answer."""

STAGE2_SYSTEM_PROMPT = f"""You are a careful reviewer verifying another model's reasoning.

You receive the original question, a Chain of Draft with deep reflections,
and a preliminary answer. Check every step and reflection for errors in logic,
arithmetic and missed cases. Correct anything that is wrong and fill any gaps.

Write your verification notes first. Then write the separator {SEPARATOR}
on its own line, followed by the final, refined answer only."""


def stage2_user_message(question: str, stage1_thinking: str, stage1_answer: str) -> str:
    return (
        f"## Original Question\n{question}\n\n"
        f"## Chain of Draft Reasoning\n{stage1_thinking}\n\n"
        f"## Preliminary Answer\n{stage1_answer}\n\n"
        "Verify the reasoning above and give the final answer."
    )
