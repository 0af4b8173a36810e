# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db ibrac.db
  python app.py params show
  python app.py entrada registrar -v 500 -v 500 --tipo-entrada 1 --produto 1 --valor-total 50000
  python app.py beneficiamento criar 1 2 --perda CU01=2:3 --frete-ida 0.4
  python app.py saida registrar 3 --preco 42.5
  python app.py rel resultado
"""

from ibrac.adapters.cli import main

if __name__ == "__main__":
    main()
