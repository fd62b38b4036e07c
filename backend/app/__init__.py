"""Host del panel WhatsApp Manager y view-model de sincronización con Supabase."""
