"""
Prompt templates grouped by reasoning phase:
- expansion_prompts: thought generation and evaluation for beam search
- aggregation_prompts: relation proposals between thoughts
- research_prompts: analysis and report generation for the research loop
"""
