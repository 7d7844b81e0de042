"""Prompts for the chat assistant and the daily coaching analysis."""

SEARCH_CONTEXT_BLOCK = """--- START OF ONLINE SEARCH RESULTS ---
{search_results}
--- END OF ONLINE SEARCH RESULTS ---

"""

CHAT_PROMPT = """Based on the following context, please answer the user's request.

Context:
{context}
User Request: {user_prompt}"""

COACHING_PROMPT = """As a professional Productivity Coach, your task is to analyze the following daily activity summary of a user.
Provide insights and actionable recommendations based on their behavior.

Analyze the data in these 3 dimensions:
1.  Problem-Solving Style: How do they approach tasks? Are they systematic, iterative, etc.?
2.  Core Goals: What seems to be their main focus based on their actions?
3.  Collaboration Style: (If applicable) How do they interact with the AI?

After the analysis, provide 2 concrete, actionable recommendations to help them improve their workflow, learn a new skill, or be more efficient.
Format your entire response in Markdown.

--- USER ACTIVITY SUMMARY ---
{activity_summary}
--- END OF SUMMARY ---
"""
