"""
どこで: `engine.render` サブパッケージ。
何を: 塗りポリゴンの寿命管理（Polygon）と GPU 転送・描画（SurfacePrimitive/SurfaceMesh/Shader）を提供。
なぜ: 計算（engine.core/util）と描画の責務を分離し、GPU リソース管理を局所化するため。
"""
