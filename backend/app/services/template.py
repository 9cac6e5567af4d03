import io

from openpyxl import Workbook

from app.services.taxonomy import CategoryRef, SubcategoryRef

TEMPLATE_COLUMNS = [
    "name",
    "category",
    "subcategory",
    "description",
    "shortDescription",
    "price",
    "compareAtPrice",
    "sku",
    "stock",
    "isActive",
    "isFeatured",
    "displayOrder",
    "images",
    "filterValues",
    "weightInGrams",
    "metalType",
    "useDynamicPricing",
]

INSTRUCTIONS = [
    "1. Fill the Products sheet with your product data",
    "2. Required fields: name, category, subcategory",
    "3. For pricing, choose one of two options:",
    "   a) Fixed price: Set price field, leave useDynamicPricing as false",
    "   b) Weight-based: Set weightInGrams, metalType, useDynamicPricing=true",
    "4. For images, you have 3 options:",
    "   a) Provide full URLs (https://...)",
    "   b) Provide filenames (image1.jpg) and include images in a ZIP with this Excel file",
    "   c) Leave empty and add images later",
    "5. Use comma to separate multiple images",
    "6. Check the Reference sheet for valid categories and subcategories",
    "7. Boolean fields accept: true/false, yes/no, 1/0",
    "8. Metal types: 22KT, 18KT, 20KT, 24KT, Silver, Platinum, etc.",
    "9. Upload just the Excel file, or a ZIP containing Excel + image files",
]


def build_template(categories: list[CategoryRef], subcategories: list[SubcategoryRef]) -> bytes:
    example_category = categories[0] if categories else None
    # prefer a subcategory that actually belongs to the example category
    example_subcategory = next(
        (s for s in subcategories if example_category and s.category_id == example_category.id),
        subcategories[0] if subcategories else None,
    )

    wb = Workbook()

    products = wb.active
    products.title = "Products"
    products.append(TEMPLATE_COLUMNS)
    products.append([
        "Example Product Name",
        example_category.name if example_category else "Rings",
        example_subcategory.name if example_subcategory else "Gold Rings",
        "Detailed product description",
        "Brief product description",
        99.99,
        149.99,
        "PROD-001",
        10,
        True,
        False,
        0,
        "https://example.com/image1.jpg,image1.jpg,image2.jpg",
        '{"material":"Gold","color":"Yellow"}',
        5.5,
        "22KT",
        False,
    ])

    category_names = {c.id: c.name for c in categories}
    reference = wb.create_sheet("Reference")
    reference.append(["Type", "Name", "Slug", "Category"])
    for c in categories:
        reference.append(["Category", c.name, c.slug, None])
    for s in subcategories:
        reference.append(["Subcategory", s.name, s.slug, category_names.get(s.category_id, "")])

    instructions = wb.create_sheet("Instructions")
    instructions.append(["Instruction"])
    for line in INSTRUCTIONS:
        instructions.append([line])

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
