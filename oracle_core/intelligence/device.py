"""设备类型判断，用于按屏幕尺寸裁剪返回内容。"""

from typing import Callable, Optional

from oracle_core.domain.models import DeviceType


MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024


def classify_viewport(width: Optional[int]) -> DeviceType:
    # 无界面环境（脚本、服务端渲染）按桌面处理
    if width is None:
        return "desktop"
    if width < MOBILE_MAX_WIDTH:
        return "mobile"
    if width < TABLET_MAX_WIDTH:
        return "tablet"
    return "desktop"


class DeviceProfiler:
    """包装一个返回当前视口宽度的回调，每次调用时重新读取。"""

    def __init__(self, width_provider: Optional[Callable[[], Optional[int]]] = None):
        self._width_provider = width_provider

    def device_type(self) -> DeviceType:
        width = self._width_provider() if self._width_provider else None
        return classify_viewport(width)
