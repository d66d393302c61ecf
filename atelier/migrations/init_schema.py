"""Database schema initialization.

CREATE TABLE / CREATE INDEX statements for the Atelier database.
Called by atelier.database.init_db() when the schema is missing.

Children reference their parent with ON DELETE CASCADE, so deleting a
client removes its projects and everything under them in one statement.
Status columns are closed vocabularies enforced with CHECK constraints.
"""


def create_schema(conn, cursor):
    """Create all tables and indexes.

    Args:
        conn: Database connection (for commit/rollback)
        cursor: Database cursor from get_cursor(conn)
    """
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS clients (
            id SERIAL PRIMARY KEY,
            prenom TEXT NOT NULL,
            nom TEXT NOT NULL,
            email TEXT NOT NULL,
            entreprise TEXT,
            telephone TEXT,
            ville TEXT,
            linkedin_url TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT,
            name TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'client' CHECK (role IN ('admin', 'client')),
            client_id INTEGER REFERENCES clients(id) ON DELETE CASCADE,
            is_active BOOLEAN DEFAULT TRUE,
            last_login TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (role = 'admin' OR client_id IS NOT NULL)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS projects (
            id SERIAL PRIMARY KEY,
            titre TEXT NOT NULL,
            description TEXT,
            client_id INTEGER NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            statut TEXT NOT NULL DEFAULT 'en_attente'
                CHECK (statut IN ('en_attente', 'en_cours', 'en_revision', 'termine', 'suspendu')),
            date_debut DATE,
            date_fin_prevue DATE,
            date_fin_reelle DATE,
            budget NUMERIC(12,2),
            liens_admin JSONB DEFAULT '[]'::jsonb,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS prospects (
            id SERIAL PRIMARY KEY,
            prenom TEXT NOT NULL,
            nom TEXT NOT NULL,
            email TEXT NOT NULL,
            telephone TEXT,
            entreprise TEXT,
            ville TEXT,
            type_demande TEXT NOT NULL DEFAULT 'autre',
            budget_range TEXT,
            echeance_souhaitee TEXT,
            description_projet TEXT,
            statut TEXT NOT NULL DEFAULT 'nouveau'
                CHECK (statut IN ('nouveau', 'contacte', 'qualifie', 'negocie', 'converti', 'perdu', 'archive')),
            source TEXT DEFAULT 'formulaire',
            resume_auto TEXT,
            notes_internes TEXT,
            discovery_call_resume TEXT,
            proposal_doc_url TEXT,
            quote_doc_url TEXT,
            converted_client_id INTEGER REFERENCES clients(id) ON DELETE SET NULL,
            converted_project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS milestones (
            id SERIAL PRIMARY KEY,
            projet_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            titre TEXT NOT NULL,
            description TEXT,
            statut TEXT NOT NULL DEFAULT 'a_faire'
                CHECK (statut IN ('a_faire', 'en_cours', 'termine')),
            date_prevue DATE,
            date_completee DATE,
            ordre INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS tasks (
            id SERIAL PRIMARY KEY,
            projet_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            milestone_id INTEGER REFERENCES milestones(id) ON DELETE SET NULL,
            titre TEXT NOT NULL,
            description TEXT,
            statut TEXT NOT NULL DEFAULT 'a_faire'
                CHECK (statut IN ('a_faire', 'en_cours', 'termine')),
            priorite TEXT NOT NULL DEFAULT 'moyenne'
                CHECK (priorite IN ('basse', 'moyenne', 'haute')),
            assignee TEXT,
            date_echeance DATE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS tickets (
            id SERIAL PRIMARY KEY,
            projet_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            milestone_id INTEGER REFERENCES milestones(id) ON DELETE SET NULL,
            titre TEXT NOT NULL,
            description TEXT,
            statut TEXT NOT NULL DEFAULT 'ouvert'
                CHECK (statut IN ('ouvert', 'en_cours', 'resolu', 'ferme')),
            priorite TEXT NOT NULL DEFAULT 'moyenne'
                CHECK (priorite IN ('basse', 'moyenne', 'haute')),
            created_by TEXT NOT NULL DEFAULT 'client' CHECK (created_by IN ('admin', 'client')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS ticket_attachments (
            id SERIAL PRIMARY KEY,
            ticket_id INTEGER NOT NULL REFERENCES tickets(id) ON DELETE CASCADE,
            nom TEXT NOT NULL,
            type TEXT,
            url TEXT,
            taille BIGINT,
            storage_path TEXT,
            uploaded_by_client_id INTEGER REFERENCES clients(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS documents (
            id SERIAL PRIMARY KEY,
            projet_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            nom TEXT NOT NULL,
            type TEXT,
            url TEXT,
            taille BIGINT,
            storage_path TEXT,
            uploaded_by TEXT NOT NULL DEFAULT 'admin' CHECK (uploaded_by IN ('admin', 'client')),
            requires_signature BOOLEAN DEFAULT FALSE,
            is_signed BOOLEAN DEFAULT FALSE,
            signed_at TIMESTAMP,
            signature_data TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS comments (
            id SERIAL PRIMARY KEY,
            projet_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            task_id INTEGER REFERENCES tasks(id) ON DELETE CASCADE,
            milestone_id INTEGER REFERENCES milestones(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            created_by_client_id INTEGER NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK ((task_id IS NULL) <> (milestone_id IS NULL))
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS reviews (
            id SERIAL PRIMARY KEY,
            projet_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            milestone_id INTEGER REFERENCES milestones(id) ON DELETE SET NULL,
            note INTEGER NOT NULL CHECK (note BETWEEN 1 AND 5),
            commentaire TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            type TEXT NOT NULL,
            audience TEXT NOT NULL CHECK (audience IN ('admin', 'client')),
            title TEXT NOT NULL,
            message TEXT,
            projet_id INTEGER REFERENCES projects(id) ON DELETE CASCADE,
            client_id INTEGER REFERENCES clients(id) ON DELETE CASCADE,
            related_id INTEGER,
            is_read BOOLEAN DEFAULT FALSE,
            read_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (audience = 'admin' OR client_id IS NOT NULL)
        )
    ''')

    # Indexes
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_projects_client ON projects(client_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_projects_statut ON projects(statut)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_prospects_statut ON prospects(statut)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_milestones_projet ON milestones(projet_id, ordre)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tasks_projet ON tasks(projet_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tasks_milestone ON tasks(milestone_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tasks_statut ON tasks(statut)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tickets_projet ON tickets(projet_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_ticket_attachments_ticket ON ticket_attachments(ticket_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_documents_projet ON documents(projet_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_comments_task ON comments(task_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_comments_milestone ON comments(milestone_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_comments_projet ON comments(projet_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_reviews_projet ON reviews(projet_id)')
    cursor.execute('''
        CREATE INDEX IF NOT EXISTS idx_notifications_audience_unread
        ON notifications(audience, client_id) WHERE is_read = FALSE
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_notifications_created ON notifications(created_at)')
