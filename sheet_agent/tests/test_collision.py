from sheet_agent.actions.collision import CollisionResolver, compute_row_offset, is_sheet_empty
from sheet_agent.domain.plan import Action, ActionPlan
from sheet_agent.grid.address import GridRegion


OCCUPIED = GridRegion(0, 0, 10, 5)


def test_offset_when_target_intersects():
    assert compute_row_offset(OCCUPIED, [GridRegion(2, 1)]) == 12


def test_no_offset_when_disjoint():
    assert compute_row_offset(OCCUPIED, [GridRegion(20, 0)]) == 0
    assert compute_row_offset(OCCUPIED, []) == 0


def test_any_intersection_shifts_whole_plan():
    targets = [GridRegion(30, 0), GridRegion(9, 4)]
    assert compute_row_offset(OCCUPIED, targets) == 12
    assert compute_row_offset(GridRegion(3, 2, 4, 2), [GridRegion(3, 2)]) == 3 + 4 + 2


def test_empty_sheet_never_offsets():
    assert is_sheet_empty(GridRegion(0, 0), "")
    assert is_sheet_empty(GridRegion(0, 0), None)
    assert not is_sheet_empty(GridRegion(0, 0), "x")
    assert not is_sheet_empty(GridRegion(0, 0, 2, 1), None)
    assert compute_row_offset(GridRegion(0, 0), [GridRegion(0, 0)], sheet_empty=True) == 0


def _plan(*actions):
    return ActionPlan(actions=list(actions))


def test_resolver_ignores_read_actions():
    plan = _plan(Action("readRange", {"address": "A1:E10"}), Action("getUsedRangeInfo", {}))
    assert CollisionResolver("offset").write_targets(plan) == []
    assert CollisionResolver("offset").resolve(plan, OCCUPIED) == 0


def test_resolver_policies():
    plan = _plan(
        Action("setCell", {"address": "B3", "value": 1}),
        Action("readRange", {"address": "A1:E10"}),
    )
    assert CollisionResolver("offset").resolve(plan, OCCUPIED) == 12
    assert CollisionResolver("off").resolve(plan, OCCUPIED) == 0

    respectful = CollisionResolver("respect_user_addresses")
    assert respectful.resolve(plan, OCCUPIED, user_request="求和") == 12
    assert respectful.resolve(plan, OCCUPIED, user_request="把合计写到B3") == 0
    assert respectful.resolve(plan, OCCUPIED, user_request="put it in $b$3 please") == 0
    assert CollisionResolver("offset").resolve(plan, OCCUPIED, user_request="写到 B3") == 12


def test_user_named_addresses():
    plan = _plan(
        Action("setRange", {"range": "Sheet1!C2:C4", "values": [[1], [2], [3]]}),
        Action("setCell", {"address": "D9", "value": 1}),
    )
    assert CollisionResolver.user_named_addresses(plan, "填到 C2:C4") == ["Sheet1!C2:C4"]
    assert CollisionResolver.user_named_addresses(plan, "no address here") == []
    assert CollisionResolver.user_named_addresses(plan, "ABC12345") == []


def test_unparsable_targets_are_left_to_executor():
    plan = _plan(Action("setCell", {"address": "not-a-cell", "value": 1}))
    assert CollisionResolver.write_targets(plan) == []
    assert CollisionResolver("offset").resolve(plan, OCCUPIED) == 0


def test_in_place_edits_never_trigger_offset():
    plan = _plan(
        Action("scanForErrors", {}),
        Action("fixError", {"address": "B2", "value": 0}),
        Action("formatRange", {"range": "A1:E1", "style": "header"}),
        Action("autoFit", {"range": "A:E"}),
    )
    resolver = CollisionResolver()
    assert resolver.write_targets(plan) == []
    assert resolver.resolve(plan, OCCUPIED, user_request="检查并修复表格中的错误") == 0
    assert CollisionResolver("offset").resolve(plan, OCCUPIED) == 0


def test_new_content_still_shifts_under_default_policy():
    plan = _plan(
        Action("setRange", {"range": "A1:B2", "values": [["k", "v"], ["a", 1]]}),
        Action("formatRange", {"range": "A1:B1", "style": "header"}),
    )
    assert CollisionResolver().write_targets(plan) == [GridRegion(0, 0, 2, 2)]
    assert CollisionResolver().resolve(plan, OCCUPIED, user_request="加一张小表") == 12
