from tarvault.vault import main

main()
