from backend.tests.api_case import ApiTestCase


class TransactionCreateTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.token = self.register()["token"]
        self.food = self.create_category(self.token, "Food", "expense")
        self.salary = self.create_category(self.token, "Salary", "income")

    def post(self, payload: dict):
        return self.client.post("/transactions", json=payload, headers=self.headers(self.token))

    def test_create_normalizes_amount_and_populates_category(self) -> None:
        data = self.create_transaction(
            self.token,
            amount=19.995,
            type="expense",
            category=self.food,
            description="  lunch  ",
            date="2024-05-10",
        )

        self.assertEqual(data["amount"], 20.0)
        self.assertEqual(data["description"], "lunch")
        self.assertTrue(data["date"].startswith("2024-05-10"))
        self.assertEqual(data["category"]["name"], "Food")
        self.assertEqual(data["category"]["type"], "expense")

    def test_date_defaults_to_now(self) -> None:
        data = self.create_transaction(
            self.token, amount="10", direction="income", category=self.salary
        )

        self.assertTrue(data["date"])
        self.assertIsNone(data["description"])

    def test_validation_precedence(self) -> None:
        cases = [
            ({}, 400, "InvalidAmount"),
            ({"amount": -1, "type": "bogus"}, 400, "InvalidAmount"),
            ({"amount": "abc", "category": self.food}, 400, "InvalidAmount"),
            ({"amount": 5, "type": "bogus"}, 400, "InvalidType"),
            ({"amount": 5, "type": "expense", "date": "nope"}, 400, "MissingCategory"),
            (
                {"amount": 5, "type": "income", "category": self.food, "date": "nope"},
                400,
                "InvalidDate",
            ),
            ({"amount": 5, "type": "income", "category": self.food}, 404, "CategoryMismatch"),
            ({"amount": 5, "type": "income", "category": 9999}, 404, "CategoryMismatch"),
            ({"amount": 5, "type": "income", "category": True}, 404, "CategoryMismatch"),
            ({"amount": 5, "type": "income", "category": 1.9}, 404, "CategoryMismatch"),
            (
                {"amount": 5, "type": "expense", "category": self.food, "date": 1700000000000},
                400,
                "InvalidDate",
            ),
        ]
        for payload, status_code, code in cases:
            with self.subTest(payload=payload):
                self.assertError(self.post(payload), status_code, code)

        listed = self.client.get("/transactions", headers=self.headers(self.token)).json()
        self.assertEqual(listed["total"], 0)

    def test_default_categories_are_usable(self) -> None:
        default_id = self.default_category_id("expense")

        data = self.create_transaction(
            self.token, amount=3, type="expense", category=default_id
        )

        self.assertEqual(data["categoryId"], default_id)

    def test_other_users_categories_are_not_usable(self) -> None:
        bob = self.register(name="Bob", email="bob@example.com")["token"]
        bob_category = self.create_category(bob, "Games", "expense")

        response = self.post({"amount": 5, "type": "expense", "category": bob_category})

        self.assertError(response, 404, "CategoryMismatch")


class TransactionListTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.token = self.register()["token"]
        self.food = self.create_category(self.token, "Food", "expense")
        self.salary = self.create_category(self.token, "Salary", "income")
        self.create_transaction(
            self.token, amount=1000, type="income", category=self.salary, date="2024-05-01"
        )
        self.create_transaction(
            self.token, amount=20, type="expense", category=self.food, date="2024-05-10T18:45:00"
        )
        self.create_transaction(
            self.token, amount=30, type="expense", category=self.food, date="2024-06-02"
        )

    def get(self, **params):
        return self.client.get("/transactions", params=params, headers=self.headers(self.token))

    def test_lists_newest_first(self) -> None:
        body = self.get().json()

        self.assertEqual(body["total"], 3)
        self.assertEqual([t["amount"] for t in body["data"]], [30.0, 20.0, 1000.0])

    def test_end_date_is_inclusive(self) -> None:
        body = self.get(startDate="2024-05-01", endDate="2024-05-10").json()

        self.assertEqual([t["amount"] for t in body["data"]], [20.0, 1000.0])

    def test_invalid_dates_are_rejected(self) -> None:
        self.assertError(self.get(startDate="garbage"), 400, "InvalidDate")
        self.assertError(self.get(endDate="2024-13-01"), 400, "InvalidDate")

    def test_category_filter(self) -> None:
        body = self.get(category=self.food).json()

        self.assertEqual(body["total"], 2)
        self.assertTrue(all(t["category"]["id"] == self.food for t in body["data"]))

    def test_category_filter_must_be_visible(self) -> None:
        bob = self.register(name="Bob", email="bob@example.com")["token"]
        bob_category = self.create_category(bob, "Games", "expense")

        self.assertError(self.get(category=bob_category), 404, "NotFoundError")

    def test_type_filter_ignores_unknown_values(self) -> None:
        self.assertEqual(self.get(type="income").json()["total"], 1)
        self.assertEqual(self.get(direction="expense").json()["total"], 2)
        self.assertEqual(self.get(type="transfer").json()["total"], 3)

    def test_pagination(self) -> None:
        body = self.get(page=2, limit=2).json()

        self.assertEqual(body["count"], 1)
        self.assertEqual(body["page"], 2)
        self.assertEqual(body["pages"], 2)
        self.assertEqual(body["data"][0]["amount"], 1000.0)

    def test_other_users_see_nothing(self) -> None:
        bob = self.register(name="Bob", email="bob@example.com")["token"]

        body = self.client.get("/transactions", headers=self.headers(bob)).json()

        self.assertEqual(body["total"], 0)
        self.assertEqual(body["data"], [])


class TransactionSummaryTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.token = self.register()["token"]
        self.food = self.create_category(self.token, "Food", "expense")
        self.rent = self.create_category(self.token, "Rent", "expense")
        self.salary = self.create_category(self.token, "Salary", "income")

    def summary(self, **params) -> dict:
        response = self.client.get(
            "/transactions/summary", params=params, headers=self.headers(self.token)
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]

    def test_empty_summary_is_all_zero(self) -> None:
        self.assertEqual(
            self.summary(),
            {"income": 0, "expense": 0, "balance": 0, "totalTransactions": 0},
        )

    def test_totals_with_filters(self) -> None:
        self.create_transaction(self.token, amount=2000, type="income", category=self.salary, date="2024-05-01")
        self.create_transaction(self.token, amount=19.995, type="expense", category=self.food, date="2024-05-03")
        self.create_transaction(self.token, amount=800.10, type="expense", category=self.rent, date="2024-05-05")
        self.create_transaction(self.token, amount=15, type="expense", category=self.food, date="2024-06-01")

        self.assertEqual(
            self.summary(),
            {"income": 2000.0, "expense": 835.1, "balance": 1164.9, "totalTransactions": 4},
        )
        self.assertEqual(
            self.summary(startDate="2024-05-01", endDate="2024-05-31"),
            {"income": 2000.0, "expense": 820.1, "balance": 1179.9, "totalTransactions": 3},
        )
        self.assertEqual(
            self.summary(category=self.food),
            {"income": 0, "expense": 35.0, "balance": -35.0, "totalTransactions": 2},
        )
        self.assertEqual(
            self.summary(startDate="2025-01-01"),
            {"income": 0, "expense": 0, "balance": 0, "totalTransactions": 0},
        )

    def test_summary_filters_are_validated(self) -> None:
        bob = self.register(name="Bob", email="bob@example.com")["token"]
        bob_category = self.create_category(bob, "Games", "expense")

        invalid_date = self.client.get(
            "/transactions/summary", params={"endDate": "soon"}, headers=self.headers(self.token)
        )
        foreign = self.client.get(
            "/transactions/summary", params={"category": bob_category}, headers=self.headers(self.token)
        )

        self.assertError(invalid_date, 400, "InvalidDate")
        self.assertError(foreign, 404, "NotFoundError")


class TransactionUpdateTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.token = self.register()["token"]
        self.food = self.create_category(self.token, "Food", "expense")
        self.rent = self.create_category(self.token, "Rent", "expense")
        self.salary = self.create_category(self.token, "Salary", "income")
        self.transaction = self.create_transaction(
            self.token, amount=25, type="expense", category=self.food, description="lunch"
        )

    def put(self, payload: dict, token: str | None = None):
        return self.client.put(
            f"/transactions/{self.transaction['id']}",
            json=payload,
            headers=self.headers(token or self.token),
        )

    def current(self) -> dict:
        body = self.client.get("/transactions", headers=self.headers(self.token)).json()
        return body["data"][0]

    def test_updates_individual_fields(self) -> None:
        response = self.put({"amount": "42.499", "date": "2024-02-29", "description": " dinner "})

        self.assertEqual(response.status_code, 200, response.text)
        data = response.json()["data"]
        self.assertEqual(data["amount"], 42.5)
        self.assertTrue(data["date"].startswith("2024-02-29"))
        self.assertEqual(data["description"], "dinner")

    def test_description_can_be_cleared(self) -> None:
        data = self.put({"description": None}).json()["data"]

        self.assertIsNone(data["description"])

    def test_field_validation(self) -> None:
        self.assertError(self.put({"amount": 0}), 400, "InvalidAmount")
        self.assertError(self.put({"amount": None}), 400, "InvalidAmount")
        self.assertError(self.put({"date": "2024-02-30"}), 400, "InvalidDate")
        self.assertError(self.put({"category": 9999}), 404, "NotFoundError")
        self.assertError(self.put({"category": True}), 404, "NotFoundError")
        self.assertError(self.put({"category": 1.5}), 404, "NotFoundError")
        self.assertError(self.put({"type": "transfer"}), 400, "InvalidType")

    def test_category_and_type_together_must_agree(self) -> None:
        self.assertError(
            self.put({"category": self.salary, "type": "expense"}), 404, "CategoryMismatch"
        )

        data = self.put({"category": self.salary, "type": "income"}).json()["data"]
        self.assertEqual(data["type"], "income")
        self.assertEqual(data["category"]["id"], self.salary)

    def test_type_alone_is_checked_against_current_category(self) -> None:
        self.assertError(self.put({"direction": "income"}), 404, "CategoryMismatch")

    def test_category_alone_is_checked_against_current_type(self) -> None:
        self.assertError(self.put({"category": self.salary}), 404, "CategoryMismatch")

        data = self.put({"category": self.rent}).json()["data"]
        self.assertEqual(data["category"]["name"], "Rent")

    def test_failed_update_writes_nothing(self) -> None:
        response = self.put({"amount": 99, "description": "changed", "type": "income"})

        self.assertError(response, 404, "CategoryMismatch")
        current = self.current()
        self.assertEqual(current["amount"], 25.0)
        self.assertEqual(current["description"], "lunch")
        self.assertEqual(current["type"], "expense")

    def test_other_users_cannot_update(self) -> None:
        bob = self.register(name="Bob", email="bob@example.com")["token"]

        self.assertError(self.put({"amount": 1}, token=bob), 404, "NotFoundError")
        missing = self.client.put(
            "/transactions/9999", json={"amount": 1}, headers=self.headers(self.token)
        )
        self.assertError(missing, 404, "NotFoundError")
        self.assertEqual(self.current()["amount"], 25.0)


class TransactionDeleteTests(ApiTestCase):
    def test_owner_deletes_and_others_get_not_found(self) -> None:
        alice = self.register()["token"]
        bob = self.register(name="Bob", email="bob@example.com")["token"]
        food = self.create_category(alice, "Food", "expense")
        transaction = self.create_transaction(alice, amount=5, type="expense", category=food)
        path = f"/transactions/{transaction['id']}"

        self.assertError(self.client.delete(path, headers=self.headers(bob)), 404, "NotFoundError")

        response = self.client.delete(path, headers=self.headers(alice))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"id": transaction["id"]})
        self.assertError(self.client.delete(path, headers=self.headers(alice)), 404, "NotFoundError")


class EndToEndTests(ApiTestCase):
    def test_register_login_categorise_and_summarise(self) -> None:
        self.register(name="User A", email="a@example.com", password="password")
        token = self.client.post(
            "/login", json={"email": "a@example.com", "password": "password"}
        ).json()["token"]
        category_id = self.create_category(token, "Salary", "income")
        self.create_transaction(token, amount=1500, direction="income", category=category_id)

        summary = self.client.get("/transactions/summary", headers=self.headers(token)).json()

        self.assertEqual(
            summary["data"],
            {"income": 1500.0, "expense": 0, "balance": 1500.0, "totalTransactions": 1},
        )

    def test_opposite_direction_category_is_rejected(self) -> None:
        token = self.register()["token"]
        category_id = self.create_category(token, "Food", "expense")

        response = self.client.post(
            "/transactions",
            json={"amount": 10, "direction": "income", "category": category_id},
            headers=self.headers(token),
        )

        self.assertError(response, 404, "CategoryMismatch")

    def test_two_users_can_both_own_food(self) -> None:
        alice = self.register()["token"]
        bob = self.register(name="Bob", email="bob@example.com")["token"]

        self.create_category(alice, "Food", "expense")
        self.create_category(bob, "Food", "expense")
