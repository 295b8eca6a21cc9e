from libb import Setting

Setting.unlock()

postgresql = Setting()
postgresql.drivername='postgresql'
postgresql.hostname='localhost'
postgresql.username='postgres'
postgresql.password='postgres'
postgresql.database='test_db'
postgresql.port=5432
postgresql.timeout=30
postgresql.use_pool=False

sqlite = Setting()
sqlite.drivername='sqlite'
sqlite.database=':memory:'
sqlite.use_pool=False

Setting.lock()
