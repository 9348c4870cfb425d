"""Minimal demonstration of the spreadsheet agent on a local workbook."""

from sheet_agent.api.service import run_sheet_chat


def _print_event(event):
    if event.kind == "content":
        print(event.fragment, end="", flush=True)


if __name__ == "__main__":
    question = "在 A1:B4 写入一个三行的销售数据表（产品, 金额），然后在 B5 计算合计并加粗表头"
    result = run_sheet_chat("demo.xlsx", question, create=True, on_event=_print_event)
    print()
    print("User:", question)
    print("Agent:", result["display_text"])
    print("Written:", result["written_targets"])
