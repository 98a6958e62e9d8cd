"""背景移除流水线的各个阶段。"""
