import unittest

from database import database


class EngineConfigTestCase(unittest.TestCase):
    def test_composed_postgres_url_names_the_installed_driver(self) -> None:
        self.assertTrue(database.POSTGRES_URL.startswith("postgresql+psycopg2://"))
        engine = database.make_engine(database.POSTGRES_URL)
        self.assertEqual(engine.dialect.driver, "psycopg2")
        engine.dispose()

    def test_sqlite_engine_allows_cross_thread_sessions(self) -> None:
        engine = database.make_engine("sqlite://")
        self.assertEqual(engine.dialect.name, "sqlite")
        engine.dispose()


if __name__ == "__main__":
    unittest.main()
