"""
どこで: `common` パッケージ。
何を: 例外・型エイリアス・環境変数設定・ロギングなど、util/engine 双方で使う軽量基盤。
なぜ: 最下層に置いて依存の向きを単純化し、循環 import を避けるため。
"""
