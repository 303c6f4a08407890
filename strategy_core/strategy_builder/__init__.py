"""
PURPOSE: Strategy Builder package.

Turns LLM conversation output into canonical strategy drafts: tagged-block
extraction, pattern mapping, completeness scoring with safe defaults, and
validation ahead of finalization. Traders describe a setup in plain English
and this package keeps the structured draft in step with the conversation.
"""
