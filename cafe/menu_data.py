DEFAULT_MENU_ITEMS = [
    {
        "slug": "masala-chai",
        "name": "Masala Chai",
        "price": "25.00",
        "description": "Traditional Indian spiced tea with milk",
        "category": "Hot Beverages",
    },
    {
        "slug": "filter-coffee",
        "name": "Filter Coffee",
        "price": "35.00",
        "description": "South Indian style coffee",
        "category": "Hot Beverages",
    },
    {
        "slug": "cappuccino",
        "name": "Cappuccino",
        "price": "120.00",
        "description": "Espresso with steamed milk and foam",
        "category": "Hot Beverages",
    },
    {
        "slug": "lassi",
        "name": "Lassi",
        "price": "60.00",
        "description": "Sweet and refreshing yogurt drink",
        "category": "Cold Beverages",
    },
    {
        "slug": "cold-coffee",
        "name": "Cold Coffee",
        "price": "140.00",
        "description": "Chilled coffee blend with ice cream",
        "category": "Cold Beverages",
    },
    {
        "slug": "nimbu-pani",
        "name": "Nimbu Pani",
        "price": "40.00",
        "description": "Fresh lime soda with spices",
        "category": "Cold Beverages",
    },
    {
        "slug": "vada-pav",
        "name": "Vada Pav",
        "price": "20.00",
        "description": "Spicy potato fritter in a bun",
        "category": "Snacks",
    },
    {
        "slug": "samosa",
        "name": "Samosa",
        "price": "25.00",
        "description": "Fried pastry with spiced potato filling",
        "category": "Snacks",
    },
    {
        "slug": "bun-maska",
        "name": "Bun Maska",
        "price": "30.00",
        "description": "Fresh bun with generous butter",
        "category": "Snacks",
    },
    {
        "slug": "paneer-tikka-sandwich",
        "name": "Paneer Tikka Sandwich",
        "price": "150.00",
        "description": "Grilled sandwich with paneer tikka filling",
        "category": "Food",
    },
    {
        "slug": "veg-burger",
        "name": "Veg Burger",
        "price": "120.00",
        "description": "Classic vegetable patty burger",
        "category": "Food",
    },
    {
        "slug": "masala-dosa",
        "name": "Masala Dosa",
        "price": "80.00",
        "description": "Crispy rice crepe with potato masala",
        "category": "Food",
    },
]
