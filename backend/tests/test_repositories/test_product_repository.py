"""
Unit tests for ProductRepository

These tests validate repository logic without requiring a database connection.
"""
import pytest
from unittest.mock import patch

from app.domain.product import Product, ProductUpdate
from app.repositories.product_repository import InsufficientStockError, ProductRepository


class TestProductRepository:
    """Test ProductRepository methods"""

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_find_by_id_returns_product(self, mock_get_conn, mock_db, sample_product_data, user_id):
        """Test find_by_id returns a Product scoped to the owner"""
        # Arrange
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.return_value = sample_product_data

        # Act
        product = ProductRepository().find_by_id(user_id, "prod-1")

        # Assert
        assert isinstance(product, Product)
        assert product.name == "Unga Pembe 2kg"
        assert mock_cursor.execute.call_args[0][1] == ("prod-1", user_id)
        mock_cursor.close.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_find_by_id_returns_none_when_not_found(self, mock_get_conn, mock_db, user_id):
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.return_value = None

        assert ProductRepository().find_by_id(user_id, "missing") is None

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_find_all_returns_products_and_count(self, mock_get_conn, mock_db, sample_product_data, user_id):
        """Test find_all returns (products, total) and applies the search filter"""
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.return_value = {'total': 1}
        mock_cursor.fetchall.return_value = [sample_product_data]

        products, total = ProductRepository().find_all(user_id, search="unga")

        assert total == 1
        assert len(products) == 1
        count_params = mock_cursor.execute.call_args_list[0][0][1]
        assert count_params == [user_id, "%unga%", "%unga%", "%unga%"]

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_decrement_stock_many_commits_once(self, mock_get_conn, mock_db, user_id):
        """Test every cart line is decremented on one connection with a single commit"""
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.side_effect = [{'quantity': 37}, {'quantity': 9}]

        remaining = ProductRepository().decrement_stock_many(user_id, [("prod-1", 3), ("prod-2", 1)])

        assert remaining == {"prod-1": 37, "prod-2": 9}
        params = [call[0][1] for call in mock_cursor.execute.call_args_list]
        assert params == [(3, "prod-1", user_id, 3), (1, "prod-2", user_id, 1)]
        mock_get_conn.assert_called_once()
        mock_conn.commit.assert_called_once()

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_decrement_stock_many_refused_line_rolls_back_cart(self, mock_get_conn, mock_db, user_id):
        """Test a refused later line rolls back the earlier decrements; nothing is committed"""
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.side_effect = [{'quantity': 37}, None]

        with pytest.raises(InsufficientStockError) as exc_info:
            ProductRepository().decrement_stock_many(user_id, [("prod-1", 3), ("prod-2", 50)])

        assert exc_info.value.product_id == "prod-2"
        assert exc_info.value.requested == 50
        mock_conn.commit.assert_not_called()
        mock_conn.rollback.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_update_sets_only_given_fields(self, mock_get_conn, mock_db, sample_product_data, user_id):
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.return_value = {**sample_product_data, "quantity": 12}

        product = ProductRepository().update(user_id, "prod-1", ProductUpdate(quantity=12))

        sql, params = mock_cursor.execute.call_args[0]
        assert "quantity = %s" in sql
        assert "updated_at = NOW()" in sql
        assert "name = %s" not in sql
        assert params == [12, "prod-1", user_id]
        assert product.quantity == 12

    @patch('app.repositories.product_repository.get_db_connection_dict_with_retry')
    def test_add_primary_image_clears_previous_primary(self, mock_get_conn, mock_db):
        mock_conn, mock_cursor = mock_db
        mock_get_conn.return_value = mock_conn
        mock_cursor.fetchone.return_value = {
            "id": "img-1",
            "product_id": "prod-1",
            "image_url": "https://cdn.example/img.png",
            "alt_text": None,
            "is_primary": True,
            "sort_order": 0,
            "created_at": None,
        }

        image = ProductRepository().add_image("prod-1", "https://cdn.example/img.png", is_primary=True)

        assert image.is_primary is True
        assert mock_cursor.execute.call_count == 2
        assert "is_primary = false" in mock_cursor.execute.call_args_list[0][0][0]
