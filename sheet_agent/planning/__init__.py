from sheet_agent.planning.extractor import extract_plan_json, parse_plan, strip_plan_blocks

__all__ = ["extract_plan_json", "parse_plan", "strip_plan_blocks"]
