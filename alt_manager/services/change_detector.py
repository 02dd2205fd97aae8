"""
alt_manager.services.change_detector
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

变化检测 —— 纯函数，逐字段比较两份 ``LiveData``。

比较使用精确相等（坐标按元素比较），不设容差：
服务端推送的数值已是量化后的值。
"""
from __future__ import annotations

from alt_manager.schemas.events import FieldChange
from alt_manager.schemas.player import LIVE_FIELDS, LiveData, LiveDataUpdate


def diff(previous: LiveData, current: LiveData) -> tuple[FieldChange, ...]:
    """返回 ``previous`` → ``current`` 之间发生变化的字段。

    结果按固定字段顺序排列：health, hunger, ping, game_mode, coordinates。
    ``diff(p, p)`` 恒为空。
    """
    changes: list[FieldChange] = []
    for name in LIVE_FIELDS:
        old = getattr(previous, name)
        new = getattr(current, name)
        if old != new:
            changes.append(FieldChange(field=name, previous=old, current=new))
    return tuple(changes)


def apply_update(previous: LiveData, update: LiveDataUpdate) -> LiveData:
    """将一次（可能不完整的）推送合并到上一份状态上。

    推送中缺失的字段保留原值，因此不会产生变化。
    """
    present = update.present_fields()
    if not present:
        return previous
    return previous.model_copy(update=present)
