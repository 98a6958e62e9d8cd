"""上传图片至云端图像服务并移除背景的桌面工具。"""

__version__ = "0.1.0"
