# Default retail chart of accounts.
# (code, name, account_type, level, parent_code)
RETAIL_CHART = [
    # ========== ACTIVOS ==========
    ("1", "ACTIVOS", "asset", 1, None),
    ("1.01", "Activos Corrientes", "asset", 2, "1"),
    ("1.01.01", "Caja General", "asset", 3, "1.01"),
    ("1.01.01.01", "Caja Bs", "asset", 4, "1.01.01"),
    ("1.01.01.02", "Caja USD", "asset", 4, "1.01.01"),
    ("1.01.02", "Bancos", "asset", 3, "1.01"),
    ("1.01.02.01", "Banco/Transfer Bs", "asset", 4, "1.01.02"),
    ("1.01.02.02", "Pago Movil Bs", "asset", 4, "1.01.02"),
    ("1.01.02.03", "Punto de Venta", "asset", 4, "1.01.02"),
    ("1.01.02.04", "Zelle", "asset", 4, "1.01.02"),
    ("1.01.03", "Cuentas por Cobrar Clientes", "asset", 3, "1.01"),
    ("1.01.04", "IVA Crédito Fiscal", "asset", 3, "1.01"),
    ("1.01.05", "Anticipo a Proveedores", "asset", 3, "1.01"),
    ("1.01.06", "Deudores Varios", "asset", 3, "1.01"),
    ("1.02", "Inventarios", "asset", 2, "1"),
    ("1.02.01", "Mercancías en Tránsito", "asset", 3, "1.02"),
    ("1.02.02", "Inventario de Productos", "asset", 3, "1.02"),
    ("1.03", "Activos Fijos", "asset", 2, "1"),
    ("1.03.01", "Terrenos", "asset", 3, "1.03"),
    ("1.03.02", "Edificaciones", "asset", 3, "1.03"),
    ("1.03.03", "Mobiliario y Equipos", "asset", 3, "1.03"),
    ("1.03.04", "Equipos de Computación", "asset", 3, "1.03"),
    ("1.03.05", "Vehículos", "asset", 3, "1.03"),
    ("1.03.07", "Depreciación Acumulada", "asset", 3, "1.03"),
    # ========== PASIVOS ==========
    ("2", "PASIVOS", "liability", 1, None),
    ("2.01", "Pasivos Corrientes", "liability", 2, "2"),
    ("2.01.01", "Cuentas por Pagar Proveedores", "liability", 3, "2.01"),
    ("2.01.02", "IVA por Pagar", "liability", 3, "2.01"),
    ("2.01.03", "Retenciones por Pagar", "liability", 3, "2.01"),
    ("2.01.04", "Préstamos Bancarios Corto Plazo", "liability", 3, "2.01"),
    ("2.01.05", "Acreedores Varios", "liability", 3, "2.01"),
    ("2.01.06", "Anticipos de Clientes", "liability", 3, "2.01"),
    ("2.02", "Pasivos No Corrientes", "liability", 2, "2"),
    ("2.02.01", "Préstamos Bancarios Largo Plazo", "liability", 3, "2.02"),
    # ========== PATRIMONIO ==========
    ("3", "PATRIMONIO", "equity", 1, None),
    ("3.01", "Capital", "equity", 2, "3"),
    ("3.01.01", "Capital Social", "equity", 3, "3.01"),
    ("3.01.02", "Aportes de Socios", "equity", 3, "3.01"),
    ("3.02", "Ganancias Retenidas", "equity", 2, "3"),
    ("3.02.01", "Utilidades Acumuladas", "equity", 3, "3.02"),
    ("3.02.02", "Reservas", "equity", 3, "3.02"),
    ("3.03", "Resultados", "equity", 2, "3"),
    ("3.03.01", "Resultado del Ejercicio", "equity", 3, "3.03"),
    # ========== INGRESOS ==========
    ("4", "INGRESOS", "revenue", 1, None),
    ("4.01", "Ventas", "revenue", 2, "4"),
    ("4.01.01", "Ventas de Productos", "revenue", 3, "4.01"),
    ("4.01.02", "Ventas al Mayor", "revenue", 3, "4.01"),
    ("4.01.03", "Ventas al Detal", "revenue", 3, "4.01"),
    ("4.01.04", "Devoluciones en Ventas", "revenue", 3, "4.01"),
    ("4.01.05", "Descuentos en Ventas", "revenue", 3, "4.01"),
    ("4.02", "Otros Ingresos", "revenue", 2, "4"),
    ("4.02.01", "Ingresos por Servicios", "revenue", 3, "4.02"),
    ("4.02.02", "Ingresos Financieros", "revenue", 3, "4.02"),
    ("4.02.02.01", "Ganancia cambiaria realizada", "revenue", 4, "4.02.02"),
    ("4.02.02.02", "Ganancia cambiaria no realizada", "revenue", 4, "4.02.02"),
    ("4.02.03", "Otros Ingresos Operativos", "revenue", 3, "4.02"),
    # ========== GASTOS ==========
    ("5", "GASTOS", "expense", 1, None),
    ("5.01", "Costo de Ventas", "expense", 2, "5"),
    ("5.01.01", "Costo de Productos Vendidos", "expense", 3, "5.01"),
    ("5.02", "Gastos Operativos", "expense", 2, "5"),
    ("5.02.01", "Gastos de Personal", "expense", 3, "5.02"),
    ("5.02.02", "Gastos de Alquiler", "expense", 3, "5.02"),
    ("5.02.03", "Servicios Públicos", "expense", 3, "5.02"),
    ("5.02.04", "Gastos de Publicidad", "expense", 3, "5.02"),
    ("5.02.05", "Gastos de Seguros", "expense", 3, "5.02"),
    ("5.02.06", "Gastos de Mantenimiento", "expense", 3, "5.02"),
    ("5.02.07", "Depreciación", "expense", 3, "5.02"),
    ("5.02.08", "Gastos Generales", "expense", 3, "5.02"),
    ("5.03", "Compras", "expense", 2, "5"),
    ("5.03.01", "Compras de Mercancía", "expense", 3, "5.03"),
    ("5.03.02", "Gastos de Compra", "expense", 3, "5.03"),
    ("5.03.03", "Devoluciones en Compras", "expense", 3, "5.03"),
    ("5.04", "Gastos No Operativos", "expense", 2, "5"),
    ("5.04.01", "Gastos Financieros", "expense", 3, "5.04"),
    ("5.04.01.01", "Pérdida cambiaria realizada", "expense", 4, "5.04.01"),
    ("5.04.01.02", "Pérdida cambiaria no realizada", "expense", 4, "5.04.01"),
    ("5.04.02", "Gastos Extraordinarios", "expense", 3, "5.04"),
]

# Only level 3+ accounts take journal lines
POSTING_LEVEL = 3

# (transaction_type, account_code, conditions); conditions=None → default mapping
DEFAULT_MAPPINGS = [
    ("cash_asset", "1.01.01", None),
    ("cash_asset", "1.01.01.01", {"method": "CASH_BS"}),
    ("cash_asset", "1.01.01.02", {"method": "CASH_USD"}),
    ("cash_asset", "1.01.02.01", {"method": "TRANSFER"}),
    ("cash_asset", "1.01.02.02", {"method": "PAGO_MOVIL"}),
    ("cash_asset", "1.01.02.03", {"method": "POINT_OF_SALE"}),
    ("cash_asset", "1.01.02.04", {"method": "ZELLE"}),
    ("accounts_receivable", "1.01.03", None),
    ("sale_tax", "2.01.02", None),
    ("purchase_tax", "1.01.04", None),
    ("accounts_payable", "2.01.01", None),
    ("transfer", "1.01.02", None),
    ("inventory_asset", "1.02.02", None),
    ("sale_revenue", "4.01.01", None),
    ("sale_cost", "5.01.01", None),
    ("purchase_expense", "5.03.01", None),
    ("expense", "5.02.01", None),
    ("income", "4.02.01", None),
    ("adjustment", "5.02.08", None),
    ("fx_gain_realized", "4.02.02.01", None),
    ("fx_gain_unrealized", "4.02.02.02", None),
    ("fx_loss_realized", "5.04.01.01", None),
    ("fx_loss_unrealized", "5.04.01.02", None),
]
