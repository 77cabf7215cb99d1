TEST_SCRIPT_REVIEW_PROMPT = """
You are a test script review agent. You will be given a set of test cases in the format below and screenshots of the test results.

SAMPLE FORMAT:
{
  "steps": [
    {
      "step_number": 1,
      "step_instructions": "Open a web browser and navigate to the login URL: https://xyz.com/",
      "status": "pending"
    },
    {
      "step_number": 2,
      "step_instructions": "Enter the provided username/password on the login page.",
      "status": "pending"
    }
  ]
}

Reply with an updated steps array in JSON:
{
  "steps": [
    {
      "step_number": 1,
      "status": "Pass | Fail | pending",
      "step_reasoning": "explanation"
    },
    ...
  ]
}

Do not add or remove any steps. Do not modify any step that already has a "Pass" status or "Fail" status unless you are certain it is now changed. Keep 'pending' steps as needed.
Keep the same step_number order.
"""

TEST_SCRIPT_OUTPUT_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "steps": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "step_number": {"type": "number"},
                    "status": {"type": "string", "enum": ["pending", "Pass", "Fail"]},
                    "step_reasoning": {"type": "string"},
                },
                "required": ["step_number", "status", "step_reasoning"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["steps"],
    "additionalProperties": False,
}
