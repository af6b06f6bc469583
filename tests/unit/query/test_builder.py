# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for QueryBuilder URL construction."""

import unittest
import uuid
from unittest.mock import MagicMock

from odata_client.core.errors import ValidationError
from odata_client.query.builder import ExpandBuilder, QueryBuilder, selector_paths
from odata_client.query.predicate import col


class TestQueryBuilderAddressing(unittest.TestCase):
    def test_entity_set_only(self):
        self.assertEqual(QueryBuilder("Products").build_url(), "Products")

    def test_integer_and_string_keys(self):
        self.assertEqual(QueryBuilder("Products").key(42).build_url(), "Products(42)")
        self.assertEqual(QueryBuilder("Customers").key("ALFKI").build_url(), "Customers('ALFKI')")

    def test_guid_key_unquoted(self):
        key = uuid.UUID("0f8fad5b-d9cb-469f-a165-70867728950e")
        self.assertEqual(
            QueryBuilder("Orders").key(key).build_url(), "Orders(0f8fad5b-d9cb-469f-a165-70867728950e)"
        )

    def test_composite_key(self):
        url = QueryBuilder("OrderLines").key({"OrderId": 1, "LineNo": 2}).build_url()
        self.assertEqual(url, "OrderLines(OrderId=1,LineNo=2)")

    def test_none_key_rejected(self):
        with self.assertRaises(ValidationError):
            QueryBuilder("Products").key(None)

    def test_cast_precedes_key(self):
        url = QueryBuilder("People").cast("NS.Employee").key(7).build_url()
        self.assertEqual(url, "People/NS.Employee(7)")
        self.assertEqual(QueryBuilder("People").of_type("NS.Employee").build_url(), "People/NS.Employee")

    def test_function_with_parameters(self):
        url = QueryBuilder("Products").function("MostExpensive", {"MaxResults": 3, "Category": None}).build_url()
        self.assertEqual(url, "Products/MostExpensive(maxResults=3)")

    def test_function_without_parameters(self):
        self.assertEqual(QueryBuilder("Products").function("Cheapest").build_url(), "Products/Cheapest()")

    def test_key_and_function(self):
        url = QueryBuilder("Products").key(1).function("Related", [("Depth", 2)]).build_url()
        self.assertEqual(url, "Products(1)/Related(depth=2)")


class TestQueryBuilderOptions(unittest.TestCase):
    def test_filters_are_parenthesized_and_encoded(self):
        url = QueryBuilder("Products").filter(col.Price > 100).filter(col.Rating >= 3).top(10).build_url()
        self.assertEqual(url, "Products?$filter=%28Price%20gt%20100%29%20and%20%28Rating%20ge%203%29&$top=10")

    def test_single_filter_still_parenthesized(self):
        url = QueryBuilder("Products").filter(lambda p: p.Price > 100).build_url()
        self.assertEqual(url, "Products?$filter=%28Price%20gt%20100%29")

    def test_filter_quotes_encoded(self):
        url = QueryBuilder("People").filter(col.Name == "O'Brien").build_url()
        self.assertEqual(url, "People?$filter=%28Name%20eq%20%27O%27%27Brien%27%29")

    def test_raw_filter_and_blank_ignored(self):
        qb = QueryBuilder("Products").filter_raw("Price gt 5").filter("  ")
        self.assertEqual(qb.build_query_options(), ["$filter=%28Price%20gt%205%29"])

    def test_option_order_is_fixed(self):
        qb = (
            QueryBuilder("Products")
            .compute("Price mul Quantity as Total")
            .apply("aggregate(Price with sum as Total)")
            .count()
            .top(5)
            .skip(10)
            .order_by("Name")
            .expand("Category")
            .select("Name", "Price")
            .search("blue")
            .filter(col.Price > 1)
        )
        names = [option.split("=", 1)[0] for option in qb.build_query_options()]
        self.assertEqual(
            names,
            ["$filter", "$search", "$select", "$expand", "$orderby", "$skip", "$top", "$count", "$apply", "$compute"],
        )

    def test_compute_expressions_joined_and_encoded(self):
        url = QueryBuilder("Sales").compute("Price mul Quantity as Total", "Price div 100 as PriceDollars").build_url()
        self.assertEqual(
            url,
            "Sales?$compute=Price%20mul%20Quantity%20as%20Total%2CPrice%20div%20100%20as%20PriceDollars",
        )

    def test_apply_encoded(self):
        url = QueryBuilder("Sales").apply("groupby((Region))").build_url()
        self.assertEqual(url, "Sales?$apply=groupby%28%28Region%29%29")

    def test_blank_search_apply_compute_ignored(self):
        qb = QueryBuilder("Products").search(" ").apply("").compute("")
        self.assertEqual(qb.build_url(), "Products")

    def test_select_and_orderby_not_encoded(self):
        url = (
            QueryBuilder("Products")
            .select(lambda p: (p.Name, p.Category.Name))
            .order_by(col.Price, descending=True)
            .order_by("Name")
            .build_url()
        )
        self.assertEqual(url, "Products?$select=Name,Category/Name&$orderby=Price desc,Name")

    def test_order_by_descending_alias(self):
        self.assertEqual(QueryBuilder("P").order_by_descending("Id").build_url(), "P?$orderby=Id desc")

    def test_top_zero_allowed_negative_rejected(self):
        self.assertEqual(QueryBuilder("P").top(0).build_url(), "P?$top=0")
        with self.assertRaises(ValidationError):
            QueryBuilder("P").top(-1)
        with self.assertRaises(ValidationError):
            QueryBuilder("P").skip(-1)

    def test_count_can_be_turned_off(self):
        self.assertEqual(QueryBuilder("P").count().count(False).build_url(), "P")

    def test_convenience_filters(self):
        qb = (
            QueryBuilder("P")
            .filter_eq("A", 1)
            .filter_ne("B", "x")
            .filter_contains("C", "y")
            .filter_in("D", [1, 2])
            .filter_null("E")
            .filter_not_null("F")
        )
        self.assertEqual(
            qb._filter,
            ["A eq 1", "B ne 'x'", "contains(C,'y')", "D in (1,2)", "E eq null", "F ne null"],
        )

    def test_filter_in_empty_is_false(self):
        self.assertEqual(QueryBuilder("P").filter_in("Id", [])._filter, ["false"])

    def test_build_url_is_repeatable(self):
        qb = QueryBuilder("Products").filter(col.Price > 1).top(3)
        self.assertEqual(qb.build_url(), qb.build_url())


class TestExpand(unittest.TestCase):
    def test_plain_expand(self):
        self.assertEqual(QueryBuilder("Customers").expand("Orders,Invoices").build_url(), "Customers?$expand=Orders,Invoices")

    def test_nested_expand_options(self):
        url = (
            QueryBuilder("Customers")
            .expand(
                "Orders",
                lambda o: o.select("Id", "Total")
                .filter(col.Total > 100)
                .expand("Items", lambda i: i.select("Sku"))
                .order_by("Total", descending=True)
                .top(5)
                .skip(1),
            )
            .build_url()
        )
        self.assertEqual(
            url,
            "Customers?$expand=Orders($select=Id,Total;$expand=Items($select=Sku);"
            "$filter=(Total gt 100);$orderby=Total desc;$top=5;$skip=1)",
        )

    def test_expand_multiple_filters(self):
        expansion = ExpandBuilder("Orders").filter("A eq 1").filter(col.B == 2)
        self.assertEqual(expansion.build(), "Orders($filter=(A eq 1) and (B eq 2))")


class TestSelectors(unittest.TestCase):
    def test_selector_forms(self):
        self.assertEqual(selector_paths("A, B"), ["A", "B"])
        self.assertEqual(selector_paths(col.Address.City), ["Address/City"])
        self.assertEqual(selector_paths(lambda p: p.Name), ["Name"])

    def test_selector_must_be_a_path(self):
        with self.assertRaises(ValidationError):
            selector_paths(lambda p: p.Price > 1)


class TestHeadersAndExecution(unittest.TestCase):
    def test_page_size_sets_prefer_header(self):
        qb = QueryBuilder("P").page_size(50).with_header("Accept-Language", "de")
        self.assertEqual(qb.headers, {"Prefer": "odata.maxpagesize=50", "Accept-Language": "de"})
        with self.assertRaises(ValidationError):
            QueryBuilder("P").page_size(0)

    def test_execute_requires_bound_builder(self):
        with self.assertRaises(RuntimeError):
            QueryBuilder("P").execute()

    def test_execute_delegates_with_result_type(self):
        ops = MagicMock()
        qb = QueryBuilder("P", _query_ops=ops).as_type(dict)
        qb.execute()
        ops.get.assert_called_once_with(qb, result_type=dict)
