"""
どこで: `engine.core` サブパッケージ。
何を: 楕円体・頂点フォーマット・塗りポリゴンのジオメトリ生成・フレーム駆動（Tickable/FrameClock）・描画ウィンドウを提供。
なぜ: GPU に依存しない計算基盤を構成し、上位層（Render）から再利用可能にするため。
"""
