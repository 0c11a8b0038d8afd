"""
测试工具模块
"""
