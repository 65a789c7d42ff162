"""核心层：配置、异常、协议"""
